"""
Nexus Orders Engine - Document Serialization
=============================================
Convert domain snapshots to and from the camelCase document layout of
the legacy `db.json` (orders, customers, suppliers).

Decimals are written as strings so balances survive a round trip
exactly; numbers written by older tooling are accepted on read.
Missing optional keys fall back to model defaults.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.audit.models import FinanceOverride, LogEntry
from engines.orders.models import (
    Customer,
    LineItem,
    ManufacturingComponent,
    Order,
    Payment,
    Supplier,
    SupplierPart,
)
from engines.orders.status import ComponentStatus, OrderStatus


# ══════════════════════════════════════════════════════════════
# PRIMITIVES
# ══════════════════════════════════════════════════════════════

def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def log_to_dict(entry: LogEntry) -> dict:
    return _compact({
        "timestamp": format_timestamp(entry.timestamp),
        "message": entry.message,
        "user": entry.user,
        "status": entry.status,
        "action": entry.action,
        "nextStep": entry.next_step,
    })


def log_from_dict(data: dict) -> LogEntry:
    return LogEntry(
        timestamp=parse_timestamp(data["timestamp"]),
        message=data["message"],
        user=data.get("user") or "unknown",
        status=data.get("status"),
        action=data.get("action"),
        next_step=data.get("nextStep"),
    )


def _logs(data: dict) -> tuple:
    return tuple(log_from_dict(entry) for entry in data.get("logs") or ())


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

def component_to_dict(component: ManufacturingComponent) -> dict:
    return _compact({
        "id": component.id,
        "description": component.description,
        "quantity": str(component.quantity),
        "unit": component.unit,
        "unitCost": str(component.unit_cost) if component.unit_cost is not None else None,
        "source": component.source,
        "status": component.status.value,
        "statusUpdatedAt": format_timestamp(component.status_updated_at),
        "supplierId": component.supplier_id,
    })


def component_from_dict(data: dict, fallback_id: str) -> ManufacturingComponent:
    return ManufacturingComponent(
        id=data.get("id") or fallback_id,
        description=data.get("description", ""),
        quantity=data.get("quantity", 0),
        unit=data.get("unit") or "pcs",
        unit_cost=data.get("unitCost"),
        source=data.get("source") or "STOCK",
        status=ComponentStatus(data.get("status") or ComponentStatus.PENDING_OFFER.value),
        status_updated_at=parse_timestamp(data.get("statusUpdatedAt")),
        supplier_id=data.get("supplierId"),
    )


def item_to_dict(item: LineItem) -> dict:
    return {
        "id": item.id,
        "orderNumber": item.order_number,
        "description": item.description,
        "quantity": str(item.quantity),
        "unit": item.unit,
        "pricePerUnit": str(item.price_per_unit),
        "taxPercent": str(item.tax_percent),
        "isAccepted": item.is_accepted,
        "components": [component_to_dict(c) for c in item.components],
        "logs": [log_to_dict(entry) for entry in item.logs],
    }


def item_from_dict(data: dict) -> LineItem:
    item_id = data["id"]
    return LineItem(
        id=item_id,
        order_number=data.get("orderNumber", ""),
        description=data.get("description", ""),
        quantity=data.get("quantity", 0),
        unit=data.get("unit") or "pcs",
        price_per_unit=data.get("pricePerUnit", 0),
        tax_percent=data.get("taxPercent", 0),
        is_accepted=bool(data.get("isAccepted", False)),
        components=tuple(
            component_from_dict(component, f"{item_id}-c{index}")
            for index, component in enumerate(data.get("components") or ())
        ),
        logs=_logs(data),
    )


def order_to_dict(order: Order) -> dict:
    override = order.finance_override
    return _compact({
        "id": order.id,
        "internalOrderNumber": order.internal_order_number,
        "customerReferenceNumber": order.customer_reference_number,
        "customerName": order.customer_name,
        "orderDate": format_timestamp(order.order_date),
        "dataEntryTimestamp": format_timestamp(order.data_entry_timestamp),
        "status": order.status.value,
        "previousStatus": order.previous_status.value if order.previous_status else None,
        "invoiceNumber": order.invoice_number,
        "paymentSlaDays": order.payment_sla_days,
        "items": [item_to_dict(item) for item in order.items],
        "logs": [log_to_dict(entry) for entry in order.logs],
        "payments": [
            {
                "amount": str(payment.amount),
                "timestamp": format_timestamp(payment.timestamp),
                "comment": payment.comment,
            }
            for payment in order.payments
        ],
        "rejectionReason": order.rejection_reason,
        "holdReason": order.hold_reason,
        "financeOverride": {
            "user": override.user,
            "comment": override.comment,
            "timestamp": format_timestamp(override.timestamp),
            "type": override.override_type,
        } if override else None,
        "proofOfDeliveryRef": order.proof_of_delivery_ref,
        "version": order.version,
    })


def order_from_dict(data: dict) -> Order:
    override = data.get("financeOverride")
    order_date = parse_timestamp(data["orderDate"])
    status = OrderStatus(data.get("status") or OrderStatus.LOGGED.value)
    # Older documents leave hold and rejection fields behind after the fact.
    held = status == OrderStatus.IN_HOLD
    rejected = status == OrderStatus.REJECTED
    return Order(
        id=data["id"],
        internal_order_number=data.get("internalOrderNumber") or data["id"],
        customer_reference_number=data.get("customerReferenceNumber", ""),
        customer_name=data.get("customerName", ""),
        order_date=order_date,
        data_entry_timestamp=parse_timestamp(data.get("dataEntryTimestamp")) or order_date,
        status=status,
        previous_status=(
            OrderStatus(data["previousStatus"]) if held and data.get("previousStatus") else None
        ),
        invoice_number=data.get("invoiceNumber") or None,
        payment_sla_days=int(data.get("paymentSlaDays") or 0),
        items=tuple(item_from_dict(item) for item in data.get("items") or ()),
        logs=_logs(data),
        payments=tuple(
            Payment(
                amount=payment["amount"],
                timestamp=parse_timestamp(payment["timestamp"]),
                comment=payment.get("comment", ""),
            )
            for payment in data.get("payments") or ()
        ),
        rejection_reason=(data.get("rejectionReason") or None) if rejected else None,
        hold_reason=(data.get("holdReason") or None) if held else None,
        finance_override=FinanceOverride(
            user=override["user"],
            comment=override["comment"],
            timestamp=parse_timestamp(override["timestamp"]),
            override_type=override["type"],
        ) if override else None,
        proof_of_delivery_ref=data.get("proofOfDeliveryRef"),
        version=int(data.get("version", 0)),
    )


# ══════════════════════════════════════════════════════════════
# PARTIES
# ══════════════════════════════════════════════════════════════

def customer_to_dict(customer: Customer) -> dict:
    return _compact({
        "id": customer.id,
        "name": customer.name,
        "email": customer.email,
        "phone": customer.phone,
        "address": customer.address,
        "paymentTermDays": customer.payment_term_days,
        "isHold": customer.is_hold,
        "holdReason": customer.hold_reason,
        "logs": [log_to_dict(entry) for entry in customer.logs],
        "version": customer.version,
    })


def customer_from_dict(data: dict) -> Customer:
    return Customer(
        id=data.get("id") or data["name"],
        name=data["name"],
        email=data.get("email", ""),
        phone=data.get("phone", ""),
        address=data.get("address", ""),
        payment_term_days=int(data.get("paymentTermDays") or 30),
        is_hold=bool(data.get("isHold", False)),
        hold_reason=(data.get("holdReason") or None) if data.get("isHold") else None,
        logs=_logs(data),
        version=int(data.get("version", 0)),
    )


def supplier_to_dict(supplier: Supplier) -> dict:
    return _compact({
        "id": supplier.id,
        "name": supplier.name,
        "email": supplier.email,
        "phone": supplier.phone,
        "address": supplier.address,
        "isBlacklisted": supplier.is_blacklisted,
        "blacklistReason": supplier.blacklist_reason,
        "priceList": [
            {
                "id": part.id,
                "partNumber": part.part_number,
                "description": part.description,
                "price": str(part.price),
                "currency": part.currency,
            }
            for part in supplier.price_list
        ],
        "logs": [log_to_dict(entry) for entry in supplier.logs],
        "version": supplier.version,
    })


def supplier_from_dict(data: dict) -> Supplier:
    return Supplier(
        id=data.get("id") or data["name"],
        name=data["name"],
        email=data.get("email", ""),
        phone=data.get("phone", ""),
        address=data.get("address", ""),
        is_blacklisted=bool(data.get("isBlacklisted", False)),
        blacklist_reason=(
            (data.get("blacklistReason") or None) if data.get("isBlacklisted") else None
        ),
        price_list=tuple(
            SupplierPart(
                id=part["id"],
                part_number=part.get("partNumber", ""),
                description=part.get("description", ""),
                price=part.get("price", 0),
                currency=part.get("currency") or "EGP",
            )
            for part in data.get("priceList") or ()
        ),
        logs=_logs(data),
        version=int(data.get("version", 0)),
    )
