"""
Nexus Adapters - JSON File Store
=================================
OrderStore backed by a single JSON document in the legacy `db.json`
layout:

    {
      "orders": [...], "customers": [...], "suppliers": [...],
      "settings": {...}, "numberSequences": {...}
    }

Every write rewrites the whole document into a temporary file next to
it and swaps it in with os.replace, so a crash mid-write leaves the
previous document intact. Attachments live in a sibling directory.

Keys this store does not own (users, notifications, ...) are preserved.

Every read-check-write runs under a lock shared by all instances that
point at the same file in this process. Several processes writing one
document are not supported.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from core.commands.errors import ConcurrencyConflict, PersistenceFailure
from core.config.settings import OperationalSettings
from core.documents.numbering import InMemoryNumberingProvider
from engines.orders.models import Customer, Order, Supplier
from engines.orders.serialization import (
    customer_from_dict,
    customer_to_dict,
    order_from_dict,
    order_to_dict,
    supplier_from_dict,
    supplier_to_dict,
)
from engines.orders.store import require_unique_reference

logger = logging.getLogger("nexus.store")

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")
_ATTACHMENT_SEQUENCE = re.compile(r"^(\d+)-")

_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = os.path.abspath(path)
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def _empty_document() -> dict:
    return {"orders": [], "customers": [], "suppliers": []}


class JsonFileOrderStore:
    """File-backed store. Writes to one path are serialized by a per-path lock."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        attachments_dir: Optional[Union[str, Path]] = None,
    ):
        self._path = Path(path)
        self._attachments_dir = (
            Path(attachments_dir) if attachments_dir else self._path.parent / "attachments"
        )
        self._lock = _lock_for(self._path)

    @property
    def path(self) -> Path:
        return self._path

    # ── document I/O ──────────────────────────────────────────

    def _read(self) -> dict:
        if not self._path.exists():
            return _empty_document()
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"Cannot read {self._path}: {exc}") from exc
        for key in ("orders", "customers", "suppliers"):
            document.setdefault(key, [])
        return document

    def _write(self, document: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent),
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistenceFailure(f"Cannot write {self._path}: {exc}") from exc

    def _find(self, entries: list, entity_id: str) -> Optional[int]:
        for index, entry in enumerate(entries):
            if entry.get("id") == entity_id:
                return index
        return None

    def _swap(
        self,
        key: str,
        entity,
        expected_version: int,
        to_dict: Callable,
        from_dict: Callable,
    ):
        with self._lock:
            document = self._read()
            entries = document[key]
            index = self._find(entries, entity.id)
            if index is None:
                raise ConcurrencyConflict(entity.id, expected_version, -1)
            actual = int(entries[index].get("version", 0))
            if actual != expected_version:
                raise ConcurrencyConflict(entity.id, expected_version, actual)
            data = to_dict(entity)
            data["version"] = expected_version + 1
            entries[index] = data
            self._write(document)
        logger.debug(f"{key}: {entity.id} saved at version {expected_version + 1}")
        return from_dict(data)

    # ── reads ─────────────────────────────────────────────────

    async def get_orders(self) -> List[Order]:
        return [order_from_dict(entry) for entry in self._read()["orders"]]

    async def get_order(self, order_id: str) -> Optional[Order]:
        entries = self._read()["orders"]
        index = self._find(entries, order_id)
        return order_from_dict(entries[index]) if index is not None else None

    async def get_customers(self) -> List[Customer]:
        return [customer_from_dict(entry) for entry in self._read()["customers"]]

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        for customer in await self.get_customers():
            if customer.id == customer_id:
                return customer
        return None

    async def get_suppliers(self) -> List[Supplier]:
        return [supplier_from_dict(entry) for entry in self._read()["suppliers"]]

    async def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        for supplier in await self.get_suppliers():
            if supplier.id == supplier_id:
                return supplier
        return None

    def get_settings(self) -> OperationalSettings:
        """SettingsStore view of the document's `settings` section."""
        return OperationalSettings.from_mapping(self._read().get("settings") or {})

    # ── writes ────────────────────────────────────────────────

    async def add_order(self, order: Order) -> Order:
        with self._lock:
            document = self._read()
            if self._find(document["orders"], order.id) is not None:
                raise ValueError(f"Order '{order.id}' already exists.")
            require_unique_reference(
                order, [order_from_dict(entry) for entry in document["orders"]],
            )
            document["orders"].append(order_to_dict(order))
            self._write(document)
        logger.debug(f"Order {order.id} added to {self._path}")
        return order

    async def save_order(self, order: Order, expected_version: int) -> Order:
        return self._swap("orders", order, expected_version, order_to_dict, order_from_dict)

    async def save_customer(self, customer: Customer, expected_version: int) -> Customer:
        return self._swap("customers", customer, expected_version, customer_to_dict, customer_from_dict)

    async def save_supplier(self, supplier: Supplier, expected_version: int) -> Supplier:
        return self._swap("suppliers", supplier, expected_version, supplier_to_dict, supplier_from_dict)

    async def add_customer(self, customer: Customer) -> Customer:
        return self._append("customers", customer, customer_to_dict)

    async def add_supplier(self, supplier: Supplier) -> Supplier:
        return self._append("suppliers", supplier, supplier_to_dict)

    def _append(self, key: str, entity, to_dict: Callable):
        with self._lock:
            document = self._read()
            if self._find(document[key], entity.id) is not None:
                raise ValueError(f"'{entity.id}' already exists in {key}.")
            document[key].append(to_dict(entity))
            self._write(document)
        return entity

    async def upload_attachment(self, filename: str, content: bytes) -> str:
        safe_name = _UNSAFE_FILENAME.sub("_", filename).strip("._") or "attachment"
        with self._lock:
            try:
                self._attachments_dir.mkdir(parents=True, exist_ok=True)
                target = self._attachments_dir / f"{self._next_attachment_sequence():05d}-{safe_name}"
                target.write_bytes(bytes(content))
            except OSError as exc:
                raise PersistenceFailure(f"Cannot store attachment {filename}: {exc}") from exc
        logger.debug(f"Attachment stored at {target}")
        return str(target)

    def _next_attachment_sequence(self) -> int:
        highest = 0
        for entry in self._attachments_dir.iterdir():
            match = _ATTACHMENT_SEQUENCE.match(entry.name)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest + 1

    async def next_document_number(self, doc_type: str, issued_at: datetime) -> str:
        """Draw a number and persist the advanced sequence in the same write."""
        with self._lock:
            document = self._read()
            provider = InMemoryNumberingProvider(states=document.get("numberSequences") or {})
            number = provider.get_and_advance(doc_type=doc_type, issued_at=issued_at)
            document["numberSequences"] = provider.snapshot()
            self._write(document)
        return number
