"""
Nexus Orders Engine - Domain Models
====================================
Immutable snapshots of orders, line items, BoM components, payments,
customers and suppliers.

Every mutation produces a NEW snapshot via dataclasses.replace(); the
store swaps whole snapshots, so a half-applied change can never be
observed. Money and quantities are Decimal so balances compare exactly.

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from core.audit.models import FinanceOverride, LogEntry
from engines.orders.lifecycle import ORDER_LIFECYCLE
from engines.orders.status import (
    INVOICED_STATUSES,
    ComponentStatus,
    OrderStatus,
)


def to_decimal(value, field_name: str = "value") -> Decimal:
    """Coerce int / str / float / Decimal into a finite Decimal."""
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be numeric, got bool.")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} must be numeric, got {value!r}.") from exc
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}.")
    return result


# ══════════════════════════════════════════════════════════════
# BILL OF MATERIALS
# ══════════════════════════════════════════════════════════════

SOURCE_STOCK = "STOCK"
SOURCE_PROCUREMENT = "PROCUREMENT"
VALID_SOURCES = frozenset({SOURCE_STOCK, SOURCE_PROCUREMENT})


@dataclass(frozen=True)
class ManufacturingComponent:
    """One BoM entry backing a line item. Cost input only."""

    id: str
    description: str
    quantity: Decimal
    unit: str = "pcs"
    unit_cost: Optional[Decimal] = None
    source: str = SOURCE_STOCK
    status: ComponentStatus = ComponentStatus.PENDING_OFFER
    status_updated_at: Optional[datetime] = None
    supplier_id: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("component id must be non-empty.")
        object.__setattr__(self, "quantity", to_decimal(self.quantity, "quantity"))
        if self.unit_cost is not None:
            object.__setattr__(self, "unit_cost", to_decimal(self.unit_cost, "unit_cost"))
        if self.source not in VALID_SOURCES:
            raise ValueError(f"source must be one of {sorted(VALID_SOURCES)}.")
        object.__setattr__(self, "status", ComponentStatus(self.status))

    @property
    def line_cost(self) -> Decimal:
        return self.quantity * (self.unit_cost or Decimal(0))


# ══════════════════════════════════════════════════════════════
# LINE ITEM
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineItem:
    """One commercial position within an order."""

    id: str
    description: str
    quantity: Decimal
    price_per_unit: Decimal
    tax_percent: Decimal = Decimal(0)
    unit: str = "pcs"
    order_number: str = ""
    is_accepted: bool = False
    components: Tuple[ManufacturingComponent, ...] = ()
    logs: Tuple[LogEntry, ...] = ()

    def __post_init__(self):
        if not self.id:
            raise ValueError("line item id must be non-empty.")
        for name in ("quantity", "price_per_unit", "tax_percent"):
            object.__setattr__(self, name, to_decimal(getattr(self, name), name))
        if self.quantity < 0 or self.price_per_unit < 0 or self.tax_percent < 0:
            raise ValueError("quantity, price_per_unit and tax_percent must be >= 0.")
        object.__setattr__(self, "components", tuple(self.components))
        object.__setattr__(self, "logs", tuple(self.logs))

    @property
    def net(self) -> Decimal:
        return self.quantity * self.price_per_unit

    @property
    def tax(self) -> Decimal:
        return self.net * self.tax_percent / Decimal(100)

    @property
    def gross(self) -> Decimal:
        return self.net + self.tax

    def find_component(self, component_id: str) -> Optional[ManufacturingComponent]:
        for component in self.components:
            if component.id == component_id:
                return component
        return None


# ══════════════════════════════════════════════════════════════
# PAYMENT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Payment:
    amount: Decimal
    timestamp: datetime
    comment: str = ""

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if self.amount <= 0:
            raise ValueError("payment amount must be > 0.")


# ══════════════════════════════════════════════════════════════
# ORDER (aggregate root)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    """
    A customer purchase order and everything recorded against it.

    Invariants (checked on every snapshot):
        - previous_status / hold_reason only while IN_HOLD
        - rejection_reason only when REJECTED
        - invoice_number only in an invoiced-or-later state, a hold taken
          from one, or REJECTED
    """

    id: str
    internal_order_number: str
    customer_reference_number: str
    customer_name: str
    order_date: datetime
    data_entry_timestamp: datetime
    status: OrderStatus = OrderStatus.LOGGED
    payment_sla_days: int = 0
    items: Tuple[LineItem, ...] = ()
    logs: Tuple[LogEntry, ...] = ()
    payments: Tuple[Payment, ...] = ()
    previous_status: Optional[OrderStatus] = None
    invoice_number: Optional[str] = None
    hold_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    finance_override: Optional[FinanceOverride] = None
    proof_of_delivery_ref: Optional[str] = None
    version: int = 0

    def __post_init__(self):
        if not self.id:
            raise ValueError("order id must be non-empty.")
        if not self.internal_order_number:
            raise ValueError("internal_order_number must be non-empty.")
        object.__setattr__(self, "status", OrderStatus(self.status))
        if self.previous_status is not None:
            object.__setattr__(self, "previous_status", OrderStatus(self.previous_status))
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "logs", tuple(self.logs))
        object.__setattr__(self, "payments", tuple(self.payments))

        held = self.status == OrderStatus.IN_HOLD
        if not held and (self.previous_status is not None or self.hold_reason):
            raise ValueError("previous_status and hold_reason are only kept while IN_HOLD.")
        if self.status != OrderStatus.REJECTED and self.rejection_reason:
            raise ValueError("rejection_reason is only kept on REJECTED orders.")
        if self.invoice_number and not self._may_carry_invoice():
            raise ValueError(
                f"Order in {self.status.value} cannot carry invoice '{self.invoice_number}'."
            )

    def _may_carry_invoice(self) -> bool:
        if self.status in INVOICED_STATUSES or self.status in (
            OrderStatus.FULFILLED, OrderStatus.REJECTED,
        ):
            return True
        return self.status == OrderStatus.IN_HOLD and self.previous_status in INVOICED_STATUSES

    @property
    def is_terminal(self) -> bool:
        return ORDER_LIFECYCLE.is_terminal(self.status.value)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal

    def find_item(self, item_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def iter_components(self):
        for item in self.items:
            yield from item.components


# ══════════════════════════════════════════════════════════════
# PARTIES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    payment_term_days: int = 30
    is_hold: bool = False
    hold_reason: Optional[str] = None
    logs: Tuple[LogEntry, ...] = ()
    version: int = 0

    def __post_init__(self):
        if not self.id or not self.name:
            raise ValueError("customer id and name must be non-empty.")
        object.__setattr__(self, "logs", tuple(self.logs))
        if not self.is_hold and self.hold_reason:
            raise ValueError("hold_reason is only kept while the customer is on hold.")


@dataclass(frozen=True)
class SupplierPart:
    id: str
    part_number: str
    description: str
    price: Decimal
    currency: str = "EGP"

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price, "price"))


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    is_blacklisted: bool = False
    blacklist_reason: Optional[str] = None
    price_list: Tuple[SupplierPart, ...] = ()
    logs: Tuple[LogEntry, ...] = ()
    version: int = 0

    def __post_init__(self):
        if not self.id or not self.name:
            raise ValueError("supplier id and name must be non-empty.")
        object.__setattr__(self, "price_list", tuple(self.price_list))
        object.__setattr__(self, "logs", tuple(self.logs))
        if not self.is_blacklisted and self.blacklist_reason:
            raise ValueError("blacklist_reason is only kept while blacklisted.")
