"""
Nexus Orders Engine - Operational Workflow
===========================================
Intake, technical review, sourcing, production, hub and delivery steps.

These are the routine moves the order desk, procurement and the factory
make every day; the financial guards live in services.lifecycle.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional, Tuple

from core.audit.functions import append_entry, create_log_entry, next_entry_time
from core.commands.errors import EntityNotFound, ValidationError
from core.commands.rejection import ReasonCode, RejectionReason
from core.documents.numbering import DOC_ORDER
from core.primitives.actor import Actor
from core.time.clock import ensure_aware
from engines.orders import actions
from engines.orders.models import LineItem, Order
from engines.orders.policies import (
    items_must_be_accepted_policy,
    order_must_have_items_policy,
    reference_must_be_unique_policy,
)
from engines.orders.profitability import compute_profitability, is_margin_breach
from engines.orders.services.base import OrderServiceBase
from engines.orders.status import (
    COMPONENT_READY_STATUSES,
    ComponentStatus,
    OrderStatus,
    status_meta,
)

logger = logging.getLogger("nexus.orders")

S = OrderStatus

REVIEWABLE = frozenset({S.LOGGED, S.TECHNICAL_REVIEW, S.NEGATIVE_MARGIN})
ROLLBACKABLE = frozenset({S.TECHNICAL_REVIEW, S.NEGATIVE_MARGIN, S.WAITING_SUPPLIERS})


def _new_order_id() -> str:
    return f"ord_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class OrderDraft:
    """What the order desk types in from a customer PO."""

    customer_reference_number: str
    order_date: datetime
    items: Tuple[LineItem, ...]
    customer_name: str = ""
    customer_id: Optional[str] = None
    payment_sla_days: Optional[int] = None

    def __post_init__(self):
        if not self.customer_reference_number or not self.customer_reference_number.strip():
            raise ValueError("customer_reference_number must be non-empty.")
        if not isinstance(self.order_date, datetime):
            raise ValueError("order_date must be datetime.")
        object.__setattr__(self, "items", tuple(self.items))


class OrderWorkflowService(OrderServiceBase):
    """Day-to-day order moves, LOGGED through DELIVERED."""

    def __init__(self, *, id_factory: Callable[[], str] = _new_order_id, **kwargs):
        super().__init__(**kwargs)
        self._id_factory = id_factory

    # ══════════════════════════════════════════════════════════
    # INTAKE
    # ══════════════════════════════════════════════════════════

    async def log_order(self, draft: OrderDraft, actor: Actor) -> Order:
        """
        Register a new order in LOGGED.

        The internal number is generated here and never changes. Logging
        for a customer on credit hold is allowed; the first log entry
        records the hold so finance sees it at review.
        """
        action = actions.ORDER_LOG
        self._authorize(actor, action, draft.customer_reference_number)
        self._refuse(order_must_have_items_policy(draft.items), action=action,
                     subject_id=draft.customer_reference_number)
        self._refuse(
            reference_must_be_unique_policy(
                draft.customer_reference_number, await self._store.get_orders(),
            ),
            action=action,
            subject_id=draft.customer_reference_number,
        )

        customer = None
        if draft.customer_id is not None:
            customer = await self._store.get_customer(draft.customer_id)
            if customer is None:
                raise EntityNotFound(RejectionReason(
                    code=ReasonCode.CUSTOMER_NOT_FOUND,
                    message=f"Customer '{draft.customer_id}' not found.",
                    policy_name="customer_must_exist_policy",
                ))
        customer_name = draft.customer_name or (customer.name if customer else "")
        if not customer_name:
            self._refuse(RejectionReason(
                code=ReasonCode.INVALID_ORDER_DATA,
                message="An order needs a customer name or a known customer id.",
                policy_name="order_must_name_customer_policy",
            ), action=action, subject_id=draft.customer_reference_number)

        payment_sla_days = draft.payment_sla_days
        if payment_sla_days is None:
            payment_sla_days = customer.payment_term_days if customer else 0

        now = self._clock.now_utc()
        internal_number = await self._store.next_document_number(DOC_ORDER, now)

        message = f"Order logged from customer PO {draft.customer_reference_number}"
        if customer is not None and customer.is_hold:
            message += f" (customer on credit hold: {customer.hold_reason})"
        entry = create_log_entry(
            actor=actor,
            message=message,
            occurred_at=now,
            status=S.LOGGED,
            action=action,
            next_step="Technical review",
        )
        order = Order(
            id=self._id_factory(),
            internal_order_number=internal_number,
            customer_reference_number=draft.customer_reference_number.strip(),
            customer_name=customer_name,
            order_date=ensure_aware(draft.order_date),
            data_entry_timestamp=now,
            status=S.LOGGED,
            payment_sla_days=payment_sla_days,
            items=tuple(replace(item, order_number=internal_number) for item in draft.items),
            logs=(entry,),
        )
        try:
            stored = await self._store.add_order(order)
        except ValidationError as exc:
            # A concurrent intake took the reference after the check above.
            logger.info(
                f"{action} refused for {draft.customer_reference_number}: {exc.code} "
                f"({exc.reason.policy_name}); {internal_number} is burned"
            )
            raise
        logger.info(f"{action}: {stored.id} as {internal_number} by {actor.actor_id}")
        return stored

    # ══════════════════════════════════════════════════════════
    # TECHNICAL REVIEW
    # ══════════════════════════════════════════════════════════

    async def begin_technical_review(
        self,
        order_id: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        return await self._transition(
            order_id, S.TECHNICAL_REVIEW, actor, actions.REVIEW_BEGIN,
            allowed_from={S.LOGGED},
            expected_version=expected_version,
            next_step="Accept items",
        )

    async def set_item_acceptance(
        self,
        order_id: str,
        item_id: str,
        accepted: bool,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Mark one line item as technically studied (or take it back)."""
        action = actions.ITEM_ACCEPTANCE_SET
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, REVIEWABLE, action)
        item = order.find_item(item_id)
        if item is None:
            raise EntityNotFound(RejectionReason(
                code=ReasonCode.ITEM_NOT_FOUND,
                message=f"Item '{item_id}' not found on order '{order_id}'.",
                policy_name="item_must_exist_policy",
            ))

        verdict = "accepted" if accepted else "returned for study"
        now = self._clock.now_utc()
        item_entry = create_log_entry(
            actor=actor, message=f"Item {verdict}",
            occurred_at=next_entry_time(item.logs, now), action=action,
        )
        updated = replace(item, is_accepted=accepted, logs=append_entry(item.logs, item_entry))
        items = tuple(updated if i.id == item_id else i for i in order.items)
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Item {item.description} {verdict}",
            items=items,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def finalize_technical_review(
        self,
        order_id: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Close the review once every item is accepted. Markup below the
        configured minimum parks the order in NEGATIVE_MARGIN for finance;
        otherwise it goes to sourcing.
        """
        action = actions.REVIEW_FINALIZE
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, {S.TECHNICAL_REVIEW, S.NEGATIVE_MARGIN}, action)
        self._refuse(items_must_be_accepted_policy(order), action=action, subject_id=order.id)

        snapshot = compute_profitability(order)
        if is_margin_breach(snapshot, self.settings):
            target = S.NEGATIVE_MARGIN
            message = (
                f"Markup {snapshot.markup_pct:.2f}% below minimum "
                f"{self.settings.minimum_margin_pct}%, blocked for finance"
            )
            next_step = "Finance margin release"
        else:
            target = S.WAITING_SUPPLIERS
            message = f"Technical review completed at {snapshot.markup_pct:.2f}% markup"
            next_step = "Sourcing"
        self._require_transition(order, target, action)

        after = self._advance(
            order, actor=actor, action=action, message=message,
            to_status=target, next_step=next_step,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def rollback_to_logged(
        self,
        order_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Send the order back for editing. Item acceptance is cleared."""
        action = actions.ORDER_ROLLBACK
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, ROLLBACKABLE, action)
        self._require_transition(order, S.LOGGED, action)
        self._require_memo(action, memo, order.id)

        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Rolled back to Logged: {memo.strip()}",
            to_status=S.LOGGED,
            next_step="Edit order",
            items=tuple(replace(item, is_accepted=False) for item in order.items),
        )
        return await self._commit(order, after, action=action, actor=actor)

    # ══════════════════════════════════════════════════════════
    # SOURCING & PRODUCTION
    # ══════════════════════════════════════════════════════════

    async def receive_component(
        self,
        order_id: str,
        item_id: str,
        component_id: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Book a sourced component in. Once every component is available,
        received or reserved the order moves on to WAITING_FACTORY.
        """
        action = actions.COMPONENT_RECEIVE
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, {S.WAITING_SUPPLIERS}, action)

        item = order.find_item(item_id)
        component = item.find_component(component_id) if item is not None else None
        if component is None:
            raise EntityNotFound(RejectionReason(
                code=ReasonCode.COMPONENT_NOT_FOUND,
                message=f"Component '{component_id}' not found on item '{item_id}'.",
                policy_name="component_must_exist_policy",
            ))
        if component.status == ComponentStatus.RECEIVED:
            self._refuse(RejectionReason(
                code=ReasonCode.INVALID_TRANSITION,
                message=f"Component '{component_id}' was already received.",
                policy_name="component_must_be_outstanding_policy",
            ), action=action, subject_id=order.id)

        now = self._clock.now_utc()
        received = replace(component, status=ComponentStatus.RECEIVED, status_updated_at=now)
        items = tuple(
            replace(i, components=tuple(
                received if c.id == component_id else c for c in i.components
            )) if i.id == item_id else i
            for i in order.items
        )
        ready = all(
            c.status in COMPONENT_READY_STATUSES
            for i in items for c in i.components
        )
        target = S.WAITING_FACTORY if ready else None
        if target is not None:
            self._require_transition(order, target, action)

        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Component {component.description} received",
            to_status=target,
            next_step="Production" if ready else None,
            items=items,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def start_production(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._production_move(
            order_id, actor, actions.PRODUCTION_START,
            allowed_from={S.WAITING_FACTORY, S.UNDER_TEST},
            to_status=S.MANUFACTURING,
            component_status=ComponentStatus.IN_MANUFACTURING,
            expected_version=expected_version,
        )

    async def finish_production(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._production_move(
            order_id, actor, actions.PRODUCTION_FINISH,
            allowed_from={S.MANUFACTURING},
            to_status=S.MANUFACTURING_COMPLETED,
            component_status=ComponentStatus.MANUFACTURED,
            expected_version=expected_version,
        )

    async def _production_move(
        self,
        order_id: str,
        actor: Actor,
        action: str,
        *,
        allowed_from,
        to_status: OrderStatus,
        component_status: ComponentStatus,
        expected_version: Optional[int],
    ) -> Order:
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, allowed_from, action)
        self._require_transition(order, to_status, action)

        now = self._clock.now_utc()
        items = tuple(
            replace(item, components=tuple(
                replace(c, status=component_status, status_updated_at=now)
                for c in item.components
            ))
            for item in order.items
        )
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=status_meta(to_status).label,
            to_status=to_status,
            items=items,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def start_quality_test(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._transition(
            order_id, S.UNDER_TEST, actor, actions.QUALITY_TEST_START,
            allowed_from={S.MANUFACTURING_COMPLETED},
            expected_version=expected_version,
        )

    async def dispatch_to_hub(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._transition(
            order_id, S.TRANSITION_TO_STOCK, actor, actions.HUB_DISPATCH,
            allowed_from={S.MANUFACTURING_COMPLETED, S.UNDER_TEST},
            expected_version=expected_version,
        )

    async def receive_at_hub(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._transition(
            order_id, S.IN_PRODUCT_HUB, actor, actions.HUB_RECEIVE,
            allowed_from={S.MANUFACTURING_COMPLETED, S.UNDER_TEST, S.TRANSITION_TO_STOCK},
            expected_version=expected_version,
            next_step="Issue invoice",
        )

    # ══════════════════════════════════════════════════════════
    # DELIVERY
    # ══════════════════════════════════════════════════════════

    async def release_for_delivery(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._transition(
            order_id, S.HUB_RELEASED, actor, actions.DELIVERY_RELEASE,
            allowed_from={S.INVOICED, S.PARTIAL_PAYMENT},
            expected_version=expected_version,
        )

    async def dispatch_to_customer(self, order_id: str, actor: Actor, *, expected_version: Optional[int] = None) -> Order:
        return await self._transition(
            order_id, S.DELIVERY, actor, actions.DELIVERY_DISPATCH,
            allowed_from={S.HUB_RELEASED},
            expected_version=expected_version,
        )

    async def confirm_delivery(
        self,
        order_id: str,
        proof_of_delivery: bytes,
        filename: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Upload the signed delivery note and move to DELIVERED.

        The upload happens after every guard passed and before the
        commit; if either fails the order is left unchanged.
        """
        action = actions.DELIVERY_CONFIRM
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, {S.HUB_RELEASED, S.DELIVERY}, action)
        self._require_transition(order, S.DELIVERED, action)
        if not proof_of_delivery:
            self._refuse(RejectionReason(
                code=ReasonCode.INVALID_ORDER_DATA,
                message="Proof of delivery document is empty.",
                policy_name="proof_of_delivery_required_policy",
            ), action=action, subject_id=order.id)

        reference = await self._store.upload_attachment(filename, proof_of_delivery)
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Delivery confirmed, proof of delivery {filename} attached",
            to_status=S.DELIVERED,
            next_step="Collect payment",
            proof_of_delivery_ref=reference,
        )
        return await self._commit(order, after, action=action, actor=actor)
