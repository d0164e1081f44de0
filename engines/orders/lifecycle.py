"""
Nexus Orders Engine - Order Lifecycle Definition
=================================================
The authoritative transition graph for customer orders, expressed as a
core WorkflowDefinition.

    LOGGED → TECHNICAL_REVIEW → WAITING_SUPPLIERS | NEGATIVE_MARGIN
    WAITING_SUPPLIERS → WAITING_FACTORY → MANUFACTURING → MANUFACTURING_COMPLETED
    MANUFACTURING_COMPLETED → UNDER_TEST | TRANSITION_TO_STOCK | IN_PRODUCT_HUB
    IN_PRODUCT_HUB | ISSUE_INVOICE → INVOICED → HUB_RELEASED → DELIVERY → DELIVERED
    PARTIAL_PAYMENT → HUB_RELEASED when a deposit was taken before release
    invoiced states → PARTIAL_PAYMENT | FULFILLED | ISSUE_INVOICE | WAITING_SUPPLIERS

Every non-terminal state may be suspended (IN_HOLD) or rejected.
IN_HOLD resumes into the operational state it was taken from.
FULFILLED re-opens only through a declared reversal (payment cancelled).
"""

from __future__ import annotations

from typing import Dict, FrozenSet

from core.primitives.workflow import WorkflowDefinition
from engines.orders.status import INVOICED_STATUSES, TERMINAL_STATUSES, OrderStatus

S = OrderStatus

_INVOICED = frozenset(status.value for status in INVOICED_STATUSES)


def _build_transitions() -> Dict[str, FrozenSet[str]]:
    forward: Dict[str, set] = {
        S.LOGGED: {S.TECHNICAL_REVIEW},
        S.TECHNICAL_REVIEW: {S.WAITING_SUPPLIERS, S.NEGATIVE_MARGIN, S.LOGGED},
        S.NEGATIVE_MARGIN: {S.WAITING_SUPPLIERS, S.LOGGED},
        S.WAITING_SUPPLIERS: {S.WAITING_FACTORY, S.LOGGED},
        S.WAITING_FACTORY: {S.MANUFACTURING},
        S.MANUFACTURING: {S.MANUFACTURING_COMPLETED},
        S.MANUFACTURING_COMPLETED: {S.UNDER_TEST, S.TRANSITION_TO_STOCK, S.IN_PRODUCT_HUB},
        S.UNDER_TEST: {S.MANUFACTURING, S.TRANSITION_TO_STOCK, S.IN_PRODUCT_HUB},
        S.TRANSITION_TO_STOCK: {S.IN_PRODUCT_HUB},
        S.IN_PRODUCT_HUB: {S.INVOICED},
        S.ISSUE_INVOICE: {S.INVOICED},
        S.INVOICED: {S.HUB_RELEASED},
        S.HUB_RELEASED: {S.DELIVERY, S.DELIVERED},
        S.DELIVERY: {S.DELIVERED},
        S.DELIVERED: set(),
        S.PARTIAL_PAYMENT: {S.HUB_RELEASED},
    }
    for status in _INVOICED:
        forward[S(status)] |= {S.ISSUE_INVOICE, S.WAITING_SUPPLIERS, S.PARTIAL_PAYMENT, S.FULFILLED}
    # PARTIAL_PAYMENT → PARTIAL_PAYMENT is a further instalment, not a state change.
    forward[S.PARTIAL_PAYMENT].discard(S.PARTIAL_PAYMENT)

    operational = set(forward)
    for status in operational:
        forward[status] |= {S.IN_HOLD, S.REJECTED}
    forward[S.IN_HOLD] = operational | {S.REJECTED}

    transitions = {
        status.value: frozenset(target.value for target in targets)
        for status, targets in forward.items()
    }
    for status in TERMINAL_STATUSES:
        transitions[status.value] = frozenset()
    return transitions


ORDER_LIFECYCLE = WorkflowDefinition(
    name="CustomerOrder",
    initial_state=S.LOGGED.value,
    terminal_states=frozenset(status.value for status in TERMINAL_STATUSES),
    transitions=_build_transitions(),
    reversals={S.FULFILLED.value: frozenset({S.PARTIAL_PAYMENT.value})},
)

# Operational states an order can be suspended from and resumed into.
HOLDABLE_STATUSES = frozenset(
    S(state) for state in ORDER_LIFECYCLE.allowed_next_states(S.IN_HOLD.value)
) - {S.REJECTED}


def can_transition(from_status: OrderStatus, to_status: OrderStatus, *, reversal: bool = False) -> bool:
    return ORDER_LIFECYCLE.is_valid_transition(
        S(from_status).value, S(to_status).value, reversal=reversal,
    )
