"""
Nexus Orders Engine - Policies
===============================
Guards evaluated before any order snapshot is built.

Each policy returns None when satisfied, or a RejectionReason that the
service turns into the matching typed error.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Collection, Iterable, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.actor import Actor
from engines.orders.actions import memo_required, roles_for
from engines.orders.lifecycle import ORDER_LIFECYCLE
from engines.orders.models import Order
from engines.orders.status import OrderStatus


def actor_must_hold_role_policy(
    actor: Actor,
    action: str,
) -> Optional[RejectionReason]:
    allowed = roles_for(action)
    if actor.has_any_role(allowed):
        return None
    return RejectionReason(
        code=ReasonCode.PERMISSION_DENIED,
        message=(
            f"'{actor.actor_id}' may not perform {action}. "
            f"Requires one of: {sorted(allowed)}."
        ),
        policy_name="actor_must_hold_role_policy",
    )


def memo_must_be_present_policy(
    action: str,
    memo: Optional[str],
) -> Optional[RejectionReason]:
    if not memo_required(action):
        return None
    if memo is not None and memo.strip():
        return None
    return RejectionReason(
        code=ReasonCode.MEMO_REQUIRED,
        message=f"{action} requires a non-empty audit memo.",
        policy_name="memo_must_be_present_policy",
    )


def status_must_be_one_of_policy(
    order: Order,
    allowed: Collection[OrderStatus],
    action: str,
) -> Optional[RejectionReason]:
    """The action is only offered from `allowed` states."""
    if order.status in allowed:
        return None
    if order.is_terminal:
        return RejectionReason(
            code=ReasonCode.TERMINAL_STATE,
            message=f"Order '{order.id}' is {order.status.value} (terminal). {action} refused.",
            policy_name="status_must_be_one_of_policy",
        )
    return RejectionReason(
        code=ReasonCode.INVALID_TRANSITION,
        message=(
            f"{action} is not valid from {order.status.value}. "
            f"Allowed from: {sorted(s.value for s in allowed)}."
        ),
        policy_name="status_must_be_one_of_policy",
    )


def transition_must_be_allowed_policy(
    order: Order,
    to_status: OrderStatus,
    *,
    reversal: bool = False,
) -> Optional[RejectionReason]:
    """Staying in the current status is always allowed."""
    if order.status == to_status:
        return None
    if ORDER_LIFECYCLE.is_valid_transition(
        order.status.value, OrderStatus(to_status).value, reversal=reversal,
    ):
        return None
    code = ReasonCode.TERMINAL_STATE if order.is_terminal else ReasonCode.INVALID_TRANSITION
    return RejectionReason(
        code=code,
        message=f"Order '{order.id}': {order.status.value} → {OrderStatus(to_status).value} is not allowed.",
        policy_name="transition_must_be_allowed_policy",
    )


def hold_toggle_policy(order: Order, hold_on: bool) -> Optional[RejectionReason]:
    if hold_on and order.status == OrderStatus.IN_HOLD:
        return RejectionReason(
            code=ReasonCode.ALREADY_IN_HOLD,
            message=f"Order '{order.id}' is already IN_HOLD.",
            policy_name="hold_toggle_policy",
        )
    if not hold_on and order.status != OrderStatus.IN_HOLD:
        return RejectionReason(
            code=ReasonCode.NOT_IN_HOLD,
            message=f"Order '{order.id}' is {order.status.value}, not IN_HOLD.",
            policy_name="hold_toggle_policy",
        )
    return None


def payment_amount_must_be_positive_policy(amount: Decimal) -> Optional[RejectionReason]:
    if amount > 0:
        return None
    return RejectionReason(
        code=ReasonCode.INVALID_AMOUNT,
        message=f"Payment amount must be > 0, got {amount}.",
        policy_name="payment_amount_must_be_positive_policy",
    )


def payment_index_must_exist_policy(
    order: Order,
    payment_index: int,
) -> Optional[RejectionReason]:
    if isinstance(payment_index, int) and 0 <= payment_index < len(order.payments):
        return None
    return RejectionReason(
        code=ReasonCode.INVALID_PAYMENT_INDEX,
        message=(
            f"Order '{order.id}' has {len(order.payments)} payment(s); "
            f"index {payment_index} does not exist."
        ),
        policy_name="payment_index_must_exist_policy",
    )


def items_must_be_accepted_policy(order: Order) -> Optional[RejectionReason]:
    pending = [item.id for item in order.items if not item.is_accepted]
    if not pending:
        return None
    return RejectionReason(
        code=ReasonCode.ITEMS_NOT_ACCEPTED,
        message=f"Order '{order.id}' has items not yet accepted: {pending}.",
        policy_name="items_must_be_accepted_policy",
    )


def reference_must_be_unique_policy(
    reference: str,
    orders: Iterable[Order],
) -> Optional[RejectionReason]:
    """A customer reference may appear on only one active order."""
    wanted = reference.strip().lower()
    for order in orders:
        if order.is_active and order.customer_reference_number.strip().lower() == wanted:
            return RejectionReason(
                code=ReasonCode.DUPLICATE_REFERENCE,
                message=(
                    f"Customer reference '{reference}' is already used by "
                    f"active order {order.internal_order_number}."
                ),
                policy_name="reference_must_be_unique_policy",
            )
    return None


def order_must_have_items_policy(items: Collection) -> Optional[RejectionReason]:
    if items:
        return None
    return RejectionReason(
        code=ReasonCode.INVALID_ORDER_DATA,
        message="An order needs at least one line item.",
        policy_name="order_must_have_items_policy",
    )
