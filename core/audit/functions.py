"""
Nexus Core Audit - Pure Audit Functions
========================================
Factory and query functions over append-only log histories.
All functions are pure - they return new tuples, never mutate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Tuple

from core.audit.models import LogEntry
from core.primitives.actor import Actor


# ══════════════════════════════════════════════════════════════
# LOG CREATION
# ══════════════════════════════════════════════════════════════

def create_log_entry(
    *,
    actor: Actor,
    message: str,
    occurred_at: datetime,
    status: Optional[str] = None,
    action: Optional[str] = None,
    next_step: Optional[str] = None,
) -> LogEntry:
    """Create an immutable log entry attributed to `actor`."""
    return LogEntry(
        timestamp=occurred_at,
        message=message,
        user=actor.actor_id,
        status=str(status.value) if hasattr(status, "value") else status,
        action=action,
        next_step=next_step,
    )


def append_entry(
    logs: Tuple[LogEntry, ...],
    entry: LogEntry,
) -> Tuple[LogEntry, ...]:
    """
    Return a new history with `entry` appended.

    Entries must stay chronological: an entry older than the current
    newest entry is refused.
    """
    if logs and entry.timestamp < logs[-1].timestamp:
        raise ValueError(
            "Log entries are append-only and chronological: "
            f"{entry.timestamp.isoformat()} precedes "
            f"{logs[-1].timestamp.isoformat()}."
        )
    return tuple(logs) + (entry,)


def next_entry_time(logs: Iterable[LogEntry], now: datetime) -> datetime:
    """
    Timestamp for the next entry of `logs`: `now`, or the newest entry's
    timestamp when the clock is behind it (host skew, imported history).
    """
    history = tuple(logs)
    if history and history[-1].timestamp > now:
        return history[-1].timestamp
    return now


# ══════════════════════════════════════════════════════════════
# QUERIES
# ══════════════════════════════════════════════════════════════

def latest_entry_for_status(
    logs: Iterable[LogEntry],
    status: str,
) -> Optional[LogEntry]:
    """Scan newest → oldest for the latest entry that recorded `status`."""
    wanted = str(status.value) if hasattr(status, "value") else status
    for entry in reversed(tuple(logs)):
        if entry.status == wanted:
            return entry
    return None


def entries_for_user(
    logs: Iterable[LogEntry],
    user: str,
) -> Tuple[LogEntry, ...]:
    return tuple(entry for entry in logs if entry.user == user)


def entries_for_action(
    logs: Iterable[LogEntry],
    action: str,
) -> Tuple[LogEntry, ...]:
    return tuple(entry for entry in logs if entry.action == action)
