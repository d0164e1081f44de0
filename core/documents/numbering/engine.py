"""
Nexus Documents - Numbering Engine
===================================
Turns a NumberingPolicy and the last persisted counter into the next
internal order number or invoice number.

The counter belongs to a calendar year. When a number is requested for
an instant in a different year than the stored one, counting restarts
at policy.start_at. The issue instant is always an argument; nothing
here reads a clock.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone

from core.documents.numbering.models import NumberingPolicy
from core.time.clock import ensure_aware


def period_key(issued_at: datetime) -> str:
    """The numbering year of issued_at, in UTC."""
    return ensure_aware(issued_at).astimezone(timezone.utc).strftime("%Y")


def build_suffix_for_period(policy: NumberingPolicy, issued_at: datetime) -> str:
    return policy.suffix.replace("{year}", period_key(issued_at))


@dataclass(frozen=True)
class SequenceState:
    """
    Counter position for one document type.

    next_sequence of 0 means nothing was issued yet; the first number
    handed out is then policy.start_at.
    """
    policy: NumberingPolicy
    period: str = ""
    next_sequence: int = 0

    def __post_init__(self):
        if not isinstance(self.next_sequence, int) or self.next_sequence < 0:
            raise ValueError("next_sequence must be int >= 0.")

    def next_number(self, issued_at: datetime) -> tuple[str, "SequenceState"]:
        year = period_key(issued_at)
        sequence = self.next_sequence if year == self.period else 0
        sequence = max(sequence, self.policy.start_at)
        number = self.policy.format_number(
            sequence, build_suffix_for_period(self.policy, issued_at)
        )
        return number, replace(self, period=year, next_sequence=sequence + 1)

    def to_dict(self) -> dict:
        return {"period_key": self.period, "next_sequence": self.next_sequence}

    @classmethod
    def from_dict(cls, policy: NumberingPolicy, data: dict) -> "SequenceState":
        return cls(
            policy,
            period=str(data.get("period_key", "")),
            next_sequence=int(data.get("next_sequence", 0)),
        )
