"""
Nexus Orders Engine - Action Catalogue
=======================================
The closed set of state-affecting actions, the roles allowed to perform
each one and whether an audit memo is mandatory.

Convention: <engine>.<subject>.<verb>
"""

from __future__ import annotations

from typing import Dict, FrozenSet

from core.primitives.actor import Role

# ── Intake & technical review ─────────────────────────────────
ORDER_LOG = "orders.order.log"
REVIEW_BEGIN = "orders.review.begin"
ITEM_ACCEPTANCE_SET = "orders.item.acceptance.set"
REVIEW_FINALIZE = "orders.review.finalize"
ORDER_ROLLBACK = "orders.order.rollback"

# ── Holds & rejection ─────────────────────────────────────────
HOLD_SET = "orders.hold.set"
HOLD_RELEASE = "orders.hold.release"
ORDER_REJECT = "orders.order.reject"
MARGIN_RELEASE = "orders.margin.release"

# ── Sourcing & production ─────────────────────────────────────
COMPONENT_RECEIVE = "orders.component.receive"
PRODUCTION_START = "orders.production.start"
PRODUCTION_FINISH = "orders.production.finish"
QUALITY_TEST_START = "orders.quality_test.start"
HUB_DISPATCH = "orders.hub.dispatch"
HUB_RECEIVE = "orders.hub.receive"

# ── Finance ───────────────────────────────────────────────────
INVOICE_ISSUE = "orders.invoice.issue"
INVOICE_CANCEL = "orders.invoice.cancel"
PAYMENT_RECORD = "orders.payment.record"
PAYMENT_CANCEL = "orders.payment.cancel"
SOURCING_REVERT = "orders.sourcing.revert"

# ── Delivery ──────────────────────────────────────────────────
DELIVERY_RELEASE = "orders.delivery.release"
DELIVERY_DISPATCH = "orders.delivery.dispatch"
DELIVERY_CONFIRM = "orders.delivery.confirm"

# ── Parties ───────────────────────────────────────────────────
CUSTOMER_HOLD_SET = "parties.customer.hold.set"
CUSTOMER_HOLD_RELEASE = "parties.customer.hold.release"
SUPPLIER_BLACKLIST = "parties.supplier.blacklist"
SUPPLIER_BLACKLIST_REMOVE = "parties.supplier.blacklist.remove"


_FINANCE = frozenset({Role.FINANCE, Role.MANAGEMENT})
_ORDER_DESK = frozenset({Role.ORDER_MANAGEMENT, Role.MANAGEMENT})
_FACTORY = frozenset({Role.FACTORY, Role.MANAGEMENT})
_PROCUREMENT = frozenset({Role.PROCUREMENT, Role.MANAGEMENT})

# ADMIN is implicitly allowed everything (see Actor.has_any_role).
ACTION_ROLES: Dict[str, FrozenSet[str]] = {
    ORDER_LOG: _ORDER_DESK,
    REVIEW_BEGIN: _ORDER_DESK,
    ITEM_ACCEPTANCE_SET: _ORDER_DESK,
    REVIEW_FINALIZE: _ORDER_DESK,
    ORDER_ROLLBACK: _ORDER_DESK | _FINANCE,
    HOLD_SET: _FINANCE,
    HOLD_RELEASE: _FINANCE,
    ORDER_REJECT: _FINANCE | _ORDER_DESK,
    MARGIN_RELEASE: _FINANCE,
    COMPONENT_RECEIVE: _PROCUREMENT,
    PRODUCTION_START: _FACTORY,
    PRODUCTION_FINISH: _FACTORY,
    QUALITY_TEST_START: _FACTORY,
    HUB_DISPATCH: _FACTORY,
    HUB_RECEIVE: _ORDER_DESK,
    INVOICE_ISSUE: _FINANCE,
    INVOICE_CANCEL: _FINANCE,
    PAYMENT_RECORD: _FINANCE,
    PAYMENT_CANCEL: _FINANCE,
    SOURCING_REVERT: _FINANCE,
    DELIVERY_RELEASE: _ORDER_DESK,
    DELIVERY_DISPATCH: _ORDER_DESK,
    DELIVERY_CONFIRM: _ORDER_DESK,
    CUSTOMER_HOLD_SET: _FINANCE,
    CUSTOMER_HOLD_RELEASE: _FINANCE,
    SUPPLIER_BLACKLIST: _FINANCE | _PROCUREMENT,
    SUPPLIER_BLACKLIST_REMOVE: _FINANCE | _PROCUREMENT,
}

MEMO_REQUIRED_ACTIONS: FrozenSet[str] = frozenset({
    ORDER_ROLLBACK,
    HOLD_SET,
    HOLD_RELEASE,
    ORDER_REJECT,
    MARGIN_RELEASE,
    INVOICE_CANCEL,
    PAYMENT_RECORD,
    PAYMENT_CANCEL,
    SOURCING_REVERT,
    CUSTOMER_HOLD_SET,
    CUSTOMER_HOLD_RELEASE,
    SUPPLIER_BLACKLIST,
    SUPPLIER_BLACKLIST_REMOVE,
})


def roles_for(action: str) -> FrozenSet[str]:
    try:
        return ACTION_ROLES[action]
    except KeyError:
        raise ValueError(f"Unknown action '{action}'.") from None


def memo_required(action: str) -> bool:
    return action in MEMO_REQUIRED_ACTIONS
