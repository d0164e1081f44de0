"""
Nexus Core Audit - Public API
==============================
Immutable, append-only audit trail.
"""

from core.audit.functions import (
    append_entry,
    create_log_entry,
    entries_for_action,
    entries_for_user,
    latest_entry_for_status,
    next_entry_time,
)
from core.audit.models import (
    HOLD_RELEASE,
    MARGIN_RELEASE,
    FinanceOverride,
    LogEntry,
)

__all__ = [
    "LogEntry",
    "FinanceOverride",
    "HOLD_RELEASE",
    "MARGIN_RELEASE",
    "create_log_entry",
    "append_entry",
    "next_entry_time",
    "latest_entry_for_status",
    "entries_for_user",
    "entries_for_action",
]
