"""
Nexus Actor Primitive - Who Performed an Action
================================================
The actor id is what lands in the `user` field of order log entries.
Authorization is decided against granted roles, never display names;
ADMIN passes every role check.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable


class ActorType(Enum):
    HUMAN = "Human"
    SYSTEM = "System"


class Role:
    """Role names as stored on user records."""

    ADMIN = "admin"
    MANAGEMENT = "management"
    ORDER_MANAGEMENT = "order_management"
    FACTORY = "factory"
    PROCUREMENT = "procurement"
    FINANCE = "finance"
    CRM = "crm"


VALID_ROLES = frozenset(
    value for name, value in vars(Role).items() if name.isupper()
)


@dataclass(frozen=True)
class Actor:
    """
    A signed-in user (order desk, finance controller, plant manager) or
    an automated job (threshold audit, import).
    """
    actor_type: ActorType
    actor_id: str
    display_name: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if not isinstance(self.actor_type, ActorType):
            raise ValueError("actor_type must be ActorType enum.")
        for name in ("actor_id", "display_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string.")
        object.__setattr__(self, "roles", frozenset(self.roles))
        unknown = self.roles - VALID_ROLES
        if unknown:
            raise ValueError(f"Unknown roles: {sorted(unknown)}.")

    @property
    def is_human(self) -> bool:
        return self.actor_type is ActorType.HUMAN

    @property
    def is_system(self) -> bool:
        return self.actor_type is ActorType.SYSTEM

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return Role.ADMIN in self.roles or not self.roles.isdisjoint(roles)

    def to_dict(self) -> dict:
        return {
            "actor_type": self.actor_type.value,
            "actor_id": self.actor_id,
            "display_name": self.display_name,
            "roles": sorted(self.roles),
        }

    @classmethod
    def human(cls, username: str, display_name: str, roles: Iterable[str] = ()) -> Actor:
        return cls(ActorType.HUMAN, username, display_name, frozenset(roles))

    @classmethod
    def system(cls, component: str) -> Actor:
        """Automated jobs run with the ADMIN role."""
        return cls(
            ActorType.SYSTEM,
            f"system:{component}",
            f"System ({component})",
            frozenset({Role.ADMIN}),
        )
