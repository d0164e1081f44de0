"""
Nexus Orders Engine - Status Registry
======================================
Static mapping from lifecycle state to display metadata and to the
SLA limit that applies while an order sits in that state.

The display category is presentation-only; no business rule reads it.
A limit of 0 hours means the state is not tracked by the SLA sentinel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict

from core.config.settings import OperationalSettings

if TYPE_CHECKING:
    from engines.orders.models import Order


# ══════════════════════════════════════════════════════════════
# LIFECYCLE STATES
# ══════════════════════════════════════════════════════════════

class OrderStatus(str, Enum):
    LOGGED = "LOGGED"
    TECHNICAL_REVIEW = "TECHNICAL_REVIEW"
    IN_HOLD = "IN_HOLD"
    REJECTED = "REJECTED"
    NEGATIVE_MARGIN = "NEGATIVE_MARGIN"
    WAITING_SUPPLIERS = "WAITING_SUPPLIERS"
    WAITING_FACTORY = "WAITING_FACTORY"
    MANUFACTURING = "MANUFACTURING"
    MANUFACTURING_COMPLETED = "MANUFACTURING_COMPLETED"
    UNDER_TEST = "UNDER_TEST"
    TRANSITION_TO_STOCK = "TRANSITION_TO_STOCK"
    IN_PRODUCT_HUB = "IN_PRODUCT_HUB"
    ISSUE_INVOICE = "ISSUE_INVOICE"
    INVOICED = "INVOICED"
    HUB_RELEASED = "HUB_RELEASED"
    DELIVERED = "DELIVERED"
    PARTIAL_PAYMENT = "PARTIAL_PAYMENT"
    FULFILLED = "FULFILLED"
    DELIVERY = "DELIVERY"

    def __str__(self) -> str:
        return self.value


class ComponentStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    PENDING_OFFER = "PENDING_OFFER"
    RFP_SENT = "RFP_SENT"
    AWARDED = "AWARDED"
    ORDERED = "ORDERED"
    RECEIVED = "RECEIVED"
    RESERVED = "RESERVED"
    IN_MANUFACTURING = "IN_MANUFACTURING"
    MANUFACTURED = "MANUFACTURED"

    def __str__(self) -> str:
        return self.value


TERMINAL_STATUSES = frozenset({OrderStatus.REJECTED, OrderStatus.FULFILLED})

# Invoice issued and still standing.
INVOICED_STATUSES = frozenset({
    OrderStatus.INVOICED,
    OrderStatus.HUB_RELEASED,
    OrderStatus.DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.PARTIAL_PAYMENT,
})

# Components in these states need no further sourcing.
COMPONENT_READY_STATUSES = frozenset({
    ComponentStatus.AVAILABLE,
    ComponentStatus.RECEIVED,
    ComponentStatus.RESERVED,
})


# ══════════════════════════════════════════════════════════════
# SLA LIMIT SELECTORS
# ══════════════════════════════════════════════════════════════

LimitSelector = Callable[["Order", OperationalSettings], float]


def _setting(name: str) -> LimitSelector:
    def select(order: "Order", settings: OperationalSettings) -> float:
        return getattr(settings, name)
    select.__name__ = f"limit_from_{name}"
    return select


def _payment_terms(order: "Order", settings: OperationalSettings) -> float:
    days = order.payment_sla_days or settings.default_payment_sla_days
    return days * 24


def _untracked(order: "Order", settings: OperationalSettings) -> float:
    return 0


# ══════════════════════════════════════════════════════════════
# REGISTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StatusMeta:
    label: str
    category: str
    limit_hours: LimitSelector = _untracked


STATUS_REGISTRY: Dict[OrderStatus, StatusMeta] = {
    OrderStatus.LOGGED: StatusMeta("Logged", "intake", _setting("order_edit_time_limit_hrs")),
    OrderStatus.TECHNICAL_REVIEW: StatusMeta("Technical Review", "intake", _setting("technical_review_limit_hrs")),
    OrderStatus.IN_HOLD: StatusMeta("In Hold", "risk"),
    OrderStatus.REJECTED: StatusMeta("Rejected", "closed"),
    OrderStatus.NEGATIVE_MARGIN: StatusMeta("Negative Margin", "risk"),
    OrderStatus.WAITING_SUPPLIERS: StatusMeta("Waiting Suppliers", "sourcing", _setting("pending_offer_limit_hrs")),
    OrderStatus.WAITING_FACTORY: StatusMeta("Waiting Factory", "production", _setting("waiting_factory_limit_hrs")),
    OrderStatus.MANUFACTURING: StatusMeta("In Factory", "production", _setting("mfg_finish_limit_hrs")),
    OrderStatus.MANUFACTURING_COMPLETED: StatusMeta("Mfg Finished", "production"),
    OrderStatus.UNDER_TEST: StatusMeta("Under Test", "production"),
    OrderStatus.TRANSITION_TO_STOCK: StatusMeta("Transit to Hub", "logistics", _setting("transit_to_hub_limit_hrs")),
    OrderStatus.IN_PRODUCT_HUB: StatusMeta("In Product Hub", "logistics", _setting("product_hub_limit_hrs")),
    OrderStatus.ISSUE_INVOICE: StatusMeta("Issue Invoice", "finance", _setting("invoiced_limit_hrs")),
    OrderStatus.INVOICED: StatusMeta("Invoiced", "finance", _setting("hub_released_limit_hrs")),
    OrderStatus.HUB_RELEASED: StatusMeta("Hub Released", "logistics", _setting("delivery_limit_hrs")),
    OrderStatus.DELIVERY: StatusMeta("Transit to customer", "logistics"),
    OrderStatus.DELIVERED: StatusMeta("Delivered", "finance", _payment_terms),
    OrderStatus.PARTIAL_PAYMENT: StatusMeta("Partial Payment", "finance", _payment_terms),
    OrderStatus.FULFILLED: StatusMeta("Fulfilled", "closed"),
}


def status_meta(status: OrderStatus) -> StatusMeta:
    return STATUS_REGISTRY[OrderStatus(status)]


def limit_hours_for(order: "Order", settings: OperationalSettings) -> float:
    """SLA limit in hours for the order's current status (0 = untracked)."""
    return status_meta(order.status).limit_hours(order, settings)
