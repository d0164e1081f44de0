"""
Nexus Core Audit - Immutable Audit Models
==========================================
Append-only log entries and finance override records.
These are frozen dataclasses - once created, never modified.
Deletion or reordering of log entries is forbidden.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


# ══════════════════════════════════════════════════════════════
# LOG ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LogEntry:
    """
    Immutable, user-attributed record of something that happened to an
    order, line item, customer or supplier.

    `status` is set only when the entry records entry into a lifecycle
    state. The SLA sentinel anchors its countdown on the latest entry
    carrying the current status, so informational entries leave it None.
    """

    timestamp: datetime
    message: str
    user: str
    status: Optional[str] = None
    action: Optional[str] = None
    next_step: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.timestamp, datetime):
            raise ValueError("timestamp must be datetime.")
        if self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware.")
        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")
        if not self.user or not isinstance(self.user, str):
            raise ValueError("user must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "user": self.user,
            "status": self.status,
            "action": self.action,
            "next_step": self.next_step,
        }


# ══════════════════════════════════════════════════════════════
# FINANCE OVERRIDE
# ══════════════════════════════════════════════════════════════

HOLD_RELEASE = "HOLD_RELEASE"
MARGIN_RELEASE = "MARGIN_RELEASE"

VALID_OVERRIDE_TYPES = frozenset({HOLD_RELEASE, MARGIN_RELEASE})


@dataclass(frozen=True)
class FinanceOverride:
    """Who forced a hold or margin block open, when and why."""

    user: str
    comment: str
    timestamp: datetime
    override_type: str  # HOLD_RELEASE | MARGIN_RELEASE

    def __post_init__(self) -> None:
        if self.override_type not in VALID_OVERRIDE_TYPES:
            raise ValueError(
                f"override_type must be one of {sorted(VALID_OVERRIDE_TYPES)}, "
                f"got '{self.override_type}'."
            )
        if not self.comment.strip():
            raise ValueError("FinanceOverride comment must be non-empty.")
