"""
Nexus Command Layer - Rejection Model
======================================
Why an order action was refused. Policies return a RejectionReason, or
None when satisfied; services turn it into the matching typed error
from core.commands.errors. Codes are stable strings for API callers,
messages are for the person at the order desk.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        for name in ("code", "message", "policy_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """Machine-readable refusal codes."""

    # ── Lookup ────────────────────────────────────────────────
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    COMPONENT_NOT_FOUND = "COMPONENT_NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    SUPPLIER_NOT_FOUND = "SUPPLIER_NOT_FOUND"

    # ── Authorization ─────────────────────────────────────────
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # ── Lifecycle ─────────────────────────────────────────────
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TERMINAL_STATE = "TERMINAL_STATE"
    ALREADY_IN_HOLD = "ALREADY_IN_HOLD"
    NOT_IN_HOLD = "NOT_IN_HOLD"
    ALREADY_BLACKLISTED = "ALREADY_BLACKLISTED"
    NOT_BLACKLISTED = "NOT_BLACKLISTED"

    # ── Validation ────────────────────────────────────────────
    MEMO_REQUIRED = "MEMO_REQUIRED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_PAYMENT_INDEX = "INVALID_PAYMENT_INDEX"
    DUPLICATE_REFERENCE = "DUPLICATE_REFERENCE"
    ITEMS_NOT_ACCEPTED = "ITEMS_NOT_ACCEPTED"
    INVALID_ORDER_DATA = "INVALID_ORDER_DATA"

    # ── Concurrency / persistence ─────────────────────────────
    VERSION_CONFLICT = "VERSION_CONFLICT"
    PERSISTENCE_UNAVAILABLE = "PERSISTENCE_UNAVAILABLE"
