"""
Nexus Orders Engine - Store Protocol
=====================================
The narrow persistence interface the lifecycle services depend on,
plus the in-memory implementation used by tests and bootstrap.

Contract:
- Every call is async; a failing backend raises PersistenceFailure.
- save_* is a compare-and-swap on `version`: the write succeeds only if
  the stored version still equals `expected_version`, and the stored
  snapshot comes back with version + 1. Otherwise ConcurrencyConflict.
- add_order re-checks the customer reference against the active orders
  inside the same locked section that inserts, so two concurrent intakes
  with one reference cannot both land (ValidationError).
- Snapshots are immutable, so readers never see a half-applied write.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from core.commands.errors import ConcurrencyConflict, error_for
from core.documents.numbering import InMemoryNumberingProvider, NumberingProvider
from engines.orders.models import Customer, Order, Supplier
from engines.orders.policies import reference_must_be_unique_policy

logger = logging.getLogger("nexus.store")


# ══════════════════════════════════════════════════════════════
# PROTOCOL
# ══════════════════════════════════════════════════════════════

class OrderStore(Protocol):

    async def get_orders(self) -> List[Order]:
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        ...

    async def get_customers(self) -> List[Customer]:
        ...

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        ...

    async def get_suppliers(self) -> List[Supplier]:
        ...

    async def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        ...

    async def add_order(self, order: Order) -> Order:
        """Insert a new order; refuses a reference held by an active order."""
        ...

    async def save_order(self, order: Order, expected_version: int) -> Order:
        ...

    async def save_customer(self, customer: Customer, expected_version: int) -> Customer:
        ...

    async def save_supplier(self, supplier: Supplier, expected_version: int) -> Supplier:
        ...

    async def upload_attachment(self, filename: str, content: bytes) -> str:
        """Store a binary attachment and return its reference."""
        ...

    async def next_document_number(self, doc_type: str, issued_at: datetime) -> str:
        """Hand out the next number of a document sequence. Never reused."""
        ...


# ══════════════════════════════════════════════════════════════
# IN-MEMORY STORE (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryOrderStore:
    """Dict-backed store. Commits are serialized by a lock."""

    def __init__(
        self,
        *,
        orders: Iterable[Order] = (),
        customers: Iterable[Customer] = (),
        suppliers: Iterable[Supplier] = (),
        numbering: Optional[NumberingProvider] = None,
    ):
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = {o.id: o for o in orders}
        self._customers: Dict[str, Customer] = {c.id: c for c in customers}
        self._suppliers: Dict[str, Supplier] = {s.id: s for s in suppliers}
        self._attachments: Dict[str, bytes] = {}
        self._numbering = numbering or InMemoryNumberingProvider()

    # ── reads ─────────────────────────────────────────────────

    async def get_orders(self) -> List[Order]:
        return list(self._orders.values())

    async def get_order(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    async def get_customers(self) -> List[Customer]:
        return list(self._customers.values())

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return self._customers.get(customer_id)

    async def get_suppliers(self) -> List[Supplier]:
        return list(self._suppliers.values())

    async def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        return self._suppliers.get(supplier_id)

    # ── writes ────────────────────────────────────────────────

    async def add_order(self, order: Order) -> Order:
        with self._lock:
            if order.id in self._orders:
                raise ValueError(f"Order '{order.id}' already exists.")
            require_unique_reference(order, self._orders.values())
            self._orders[order.id] = order
        logger.debug(f"Order {order.id} added")
        return order

    async def save_order(self, order: Order, expected_version: int) -> Order:
        with self._lock:
            stored = _swap(self._orders, order, expected_version)
        logger.debug(f"Order {order.id} saved at version {stored.version}")
        return stored

    async def save_customer(self, customer: Customer, expected_version: int) -> Customer:
        with self._lock:
            return _swap(self._customers, customer, expected_version)

    async def save_supplier(self, supplier: Supplier, expected_version: int) -> Supplier:
        with self._lock:
            return _swap(self._suppliers, supplier, expected_version)

    async def upload_attachment(self, filename: str, content: bytes) -> str:
        with self._lock:
            reference = f"memory://attachments/{len(self._attachments) + 1}/{filename}"
            self._attachments[reference] = bytes(content)
        return reference

    def get_attachment(self, reference: str) -> Optional[bytes]:
        return self._attachments.get(reference)

    async def next_document_number(self, doc_type: str, issued_at: datetime) -> str:
        return self._numbering.get_and_advance(doc_type=doc_type, issued_at=issued_at)


def require_unique_reference(order: Order, existing: Iterable[Order]) -> None:
    """Re-check the customer reference at insert time, under the store lock."""
    reason = reference_must_be_unique_policy(order.customer_reference_number, existing)
    if reason is not None:
        logger.info(f"Order {order.id} not added: {reason.code}")
        raise error_for(reason)


def _swap(entities: dict, entity, expected_version: int):
    current = entities.get(entity.id)
    actual = current.version if current is not None else -1
    if actual != expected_version:
        raise ConcurrencyConflict(entity.id, expected_version, actual)
    stored = replace(entity, version=expected_version + 1)
    entities[entity.id] = stored
    return stored
