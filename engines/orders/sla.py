"""
Nexus Orders Engine - SLA Sentinel
===================================
Remaining / breached time for the state an order (or line item, or
sourced component) currently sits in.

Doctrine:
- Pure function of (subject, now, settings). No timers, no stored state.
- Derived from absolute timestamps only, so re-evaluating on any
  schedule yields identical results for identical inputs.
- Takes no locks and never touches the store.

Algorithm:
    1. limit = registry limit for the current status (0 → untracked)
    2. anchor = latest log entry whose status equals the current status
    3. no such entry → anchor = order.data_entry_timestamp
    4. remaining_ms = limit * 3_600_000 - (now - anchor)
    5. breached when remaining_ms < 0
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from core.audit.functions import latest_entry_for_status
from core.audit.models import LogEntry
from core.config.settings import OperationalSettings
from core.time.clock import ensure_aware
from engines.orders.models import LineItem, ManufacturingComponent, Order
from engines.orders.status import ComponentStatus, limit_hours_for

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
_ONE_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class SlaStatus:
    """
    Outcome of one sentinel evaluation.

    `tracked` is False when the current state carries no limit; every
    other field is then zero / None.
    """

    status: str
    limit_hours: float
    anchor: Optional[datetime]
    elapsed_ms: int
    remaining_ms: int

    @property
    def tracked(self) -> bool:
        return self.limit_hours > 0

    @property
    def is_breached(self) -> bool:
        return self.tracked and self.remaining_ms < 0

    @property
    def display(self) -> str:
        if not self.tracked:
            return ""
        return format_duration(abs(self.remaining_ms))

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "limit_hours": self.limit_hours,
            "anchor": self.anchor.isoformat() if self.anchor else None,
            "elapsed_ms": self.elapsed_ms,
            "remaining_ms": self.remaining_ms,
            "is_breached": self.is_breached,
            "display": self.display,
        }


def format_duration(duration_ms: int) -> str:
    """
    "Nd Nh" above 24 hours, otherwise "Nh Nm", or "Nm" under one hour.
    Components are floored.
    """
    hours = duration_ms // MS_PER_HOUR
    minutes = (duration_ms % MS_PER_HOUR) // MS_PER_MINUTE
    if hours > 24:
        return f"{hours // 24}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _countdown(
    status: str,
    limit_hours: float,
    anchor: datetime,
    now: datetime,
) -> SlaStatus:
    if limit_hours <= 0:
        return SlaStatus(status=status, limit_hours=0, anchor=None, elapsed_ms=0, remaining_ms=0)
    elapsed_ms = (ensure_aware(now) - ensure_aware(anchor)) // _ONE_MS
    limit_ms = int(round(limit_hours * MS_PER_HOUR))
    return SlaStatus(
        status=status,
        limit_hours=limit_hours,
        anchor=anchor,
        elapsed_ms=elapsed_ms,
        remaining_ms=limit_ms - elapsed_ms,
    )


def _anchor(logs: Iterable[LogEntry], status: str, fallback: datetime) -> datetime:
    entry = latest_entry_for_status(logs, status)
    return entry.timestamp if entry is not None else fallback


# ══════════════════════════════════════════════════════════════
# ORDER / LINE ITEM
# ══════════════════════════════════════════════════════════════

def evaluate_sla(
    order: Order,
    now: datetime,
    settings: OperationalSettings,
) -> SlaStatus:
    status = order.status.value
    limit = limit_hours_for(order, settings)
    anchor = _anchor(order.logs, status, order.data_entry_timestamp)
    return _countdown(status, limit, anchor, now)


def evaluate_item_sla(
    item: LineItem,
    order: Order,
    now: datetime,
    settings: OperationalSettings,
) -> SlaStatus:
    """Same countdown, anchored on the item's own log history."""
    status = order.status.value
    limit = limit_hours_for(order, settings)
    anchor = _anchor(item.logs, status, order.data_entry_timestamp)
    return _countdown(status, limit, anchor, now)


# ══════════════════════════════════════════════════════════════
# SOURCING COMPONENTS
# ══════════════════════════════════════════════════════════════

_COMPONENT_LIMITS = {
    ComponentStatus.PENDING_OFFER: "pending_offer_limit_hrs",
    ComponentStatus.RFP_SENT: "rfp_sent_limit_hrs",
    ComponentStatus.AWARDED: "issue_po_limit_hrs",
    ComponentStatus.ORDERED: "ordered_limit_hrs",
}


def component_limit_hours(
    component: ManufacturingComponent,
    settings: OperationalSettings,
) -> float:
    setting = _COMPONENT_LIMITS.get(component.status)
    return getattr(settings, setting) if setting else 0


def evaluate_component_sla(
    component: ManufacturingComponent,
    order: Order,
    now: datetime,
    settings: OperationalSettings,
) -> SlaStatus:
    """Sourcing countdown anchored on the component's last status change."""
    anchor = component.status_updated_at or order.data_entry_timestamp
    limit = component_limit_hours(component, settings)
    return _countdown(component.status.value, limit, anchor, now)


# ══════════════════════════════════════════════════════════════
# SLA BOARD
# ══════════════════════════════════════════════════════════════

def breached_orders(
    orders: Iterable[Order],
    now: datetime,
    settings: OperationalSettings,
) -> List[Tuple[Order, SlaStatus]]:
    """Breached orders, worst breach first (ties broken by order id)."""
    board = []
    for order in orders:
        sla = evaluate_sla(order, now, settings)
        if sla.is_breached:
            board.append((order, sla))
    board.sort(key=lambda pair: (pair[1].remaining_ms, pair[0].id))
    return board
