"""
Nexus Orders Engine - Guarded Financial Actions
================================================
Holds, rejection, margin release, invoicing, payments and the invoiced
revert. One explicit method per action.

Every method takes the acting Actor and an optional `expected_version`
precondition, and returns the committed snapshot.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from core.audit.models import HOLD_RELEASE, MARGIN_RELEASE, FinanceOverride
from core.commands.rejection import ReasonCode, RejectionReason
from core.documents.numbering import DOC_INVOICE
from core.primitives.actor import Actor
from engines.orders import actions
from engines.orders.lifecycle import HOLDABLE_STATUSES
from engines.orders.models import Order, Payment, to_decimal
from engines.orders.policies import (
    hold_toggle_policy,
    payment_amount_must_be_positive_policy,
    payment_index_must_exist_policy,
)
from engines.orders.profitability import compute_profitability
from engines.orders.services.base import OrderServiceBase
from engines.orders.status import (
    INVOICED_STATUSES,
    TERMINAL_STATUSES,
    ComponentStatus,
    OrderStatus,
)

S = OrderStatus

NON_TERMINAL = frozenset(S) - TERMINAL_STATUSES
ISSUABLE = frozenset({S.IN_PRODUCT_HUB, S.ISSUE_INVOICE})
PAYMENT_CANCELLABLE = INVOICED_STATUSES | {S.FULFILLED}


class OrderLifecycleService(OrderServiceBase):
    """Finance-facing lifecycle actions."""

    # ══════════════════════════════════════════════════════════
    # HOLD / REJECT / MARGIN
    # ══════════════════════════════════════════════════════════

    async def set_hold(
        self,
        order_id: str,
        hold_on: bool,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Suspend an order into IN_HOLD, or release it back into exactly the
        status it was suspended from.
        """
        action = actions.HOLD_SET if hold_on else actions.HOLD_RELEASE
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._refuse(hold_toggle_policy(order, hold_on), action=action, subject_id=order.id)

        if hold_on:
            self._require_status(order, HOLDABLE_STATUSES, action)
            self._require_transition(order, S.IN_HOLD, action)
            self._require_memo(action, memo, order.id)
            after = self._advance(
                order,
                actor=actor,
                action=action,
                message=f"Order placed on hold: {memo.strip()}",
                to_status=S.IN_HOLD,
                previous_status=order.status,
                hold_reason=memo.strip(),
            )
            return await self._commit(order, after, action=action, actor=actor)

        restore = order.previous_status
        if restore is None:
            self._refuse(RejectionReason(
                code=ReasonCode.INVALID_TRANSITION,
                message=f"Order '{order.id}' has no recorded status to resume into.",
                policy_name="hold_release_needs_previous_status_policy",
            ), action=action, subject_id=order.id)
        self._require_transition(order, restore, action)
        self._require_memo(action, memo, order.id)

        now = self._clock.now_utc()
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Hold released, resuming {restore.value}: {memo.strip()}",
            to_status=restore,
            previous_status=None,
            hold_reason=None,
            finance_override=FinanceOverride(
                user=actor.actor_id,
                comment=memo.strip(),
                timestamp=now,
                override_type=HOLD_RELEASE,
            ),
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def reject(
        self,
        order_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        action = actions.ORDER_REJECT
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, NON_TERMINAL, action)
        self._require_transition(order, S.REJECTED, action)
        self._require_memo(action, memo, order.id)

        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Order rejected: {memo.strip()}",
            to_status=S.REJECTED,
            rejection_reason=memo.strip(),
            previous_status=None,
            hold_reason=None,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def release_margin_block(
        self,
        order_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        action = actions.MARGIN_RELEASE
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, {S.NEGATIVE_MARGIN}, action)
        self._require_transition(order, S.WAITING_SUPPLIERS, action)
        self._require_memo(action, memo, order.id)

        markup = compute_profitability(order).markup_pct
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Margin block released at {markup:.2f}% markup: {memo.strip()}",
            to_status=S.WAITING_SUPPLIERS,
            next_step="Sourcing",
            finance_override=FinanceOverride(
                user=actor.actor_id,
                comment=memo.strip(),
                timestamp=self._clock.now_utc(),
                override_type=MARGIN_RELEASE,
            ),
        )
        return await self._commit(order, after, action=action, actor=actor)

    # ══════════════════════════════════════════════════════════
    # INVOICING
    # ══════════════════════════════════════════════════════════

    async def issue_invoice(
        self,
        order_id: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Assign a fresh invoice number and move to INVOICED.

        The number is drawn only after every guard passed. A number drawn
        for a commit that then fails is burned, never handed out again.
        """
        action = actions.INVOICE_ISSUE
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, ISSUABLE, action)
        self._require_transition(order, S.INVOICED, action)

        invoice_number = await self._store.next_document_number(
            DOC_INVOICE, self._clock.now_utc(),
        )
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Invoice {invoice_number} issued",
            to_status=S.INVOICED,
            next_step="Hub release",
            invoice_number=invoice_number,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def cancel_invoice(
        self,
        order_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Void the invoice. Recorded payments stay on the order."""
        action = actions.INVOICE_CANCEL
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, INVOICED_STATUSES, action)
        self._require_transition(order, S.ISSUE_INVOICE, action)
        self._require_memo(action, memo, order.id)

        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Invoice {order.invoice_number} cancelled: {memo.strip()}",
            to_status=S.ISSUE_INVOICE,
            invoice_number=None,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def revert_invoiced_order_to_sourcing(
        self,
        order_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Void the invoice and send every component back out for quotes."""
        action = actions.SOURCING_REVERT
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, INVOICED_STATUSES, action)
        self._require_transition(order, S.WAITING_SUPPLIERS, action)
        self._require_memo(action, memo, order.id)

        now = self._clock.now_utc()
        items = tuple(
            replace(item, components=tuple(
                replace(component, status=ComponentStatus.RFP_SENT, status_updated_at=now)
                for component in item.components
            ))
            for item in order.items
        )
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=f"Invoice {order.invoice_number} voided, order returned to sourcing: {memo.strip()}",
            to_status=S.WAITING_SUPPLIERS,
            next_step="Re-award components",
            invoice_number=None,
            items=items,
        )
        return await self._commit(order, after, action=action, actor=actor)

    # ══════════════════════════════════════════════════════════
    # PAYMENTS
    # ══════════════════════════════════════════════════════════

    async def record_payment(
        self,
        order_id: str,
        amount,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Append a payment. Outstanding 0 → FULFILLED, otherwise PARTIAL_PAYMENT.

        The balance is computed on the loaded snapshot and committed with
        a compare-and-swap, so a concurrent payment makes one of the two
        fail with ConcurrencyConflict instead of both applying.
        """
        action = actions.PAYMENT_RECORD
        self._authorize(actor, action, order_id)
        try:
            amount = to_decimal(amount, "amount")
        except (TypeError, ValueError) as exc:
            self._refuse(RejectionReason(
                code=ReasonCode.INVALID_AMOUNT,
                message=str(exc),
                policy_name="payment_amount_must_be_positive_policy",
            ), action=action, subject_id=order_id)
        self._refuse(payment_amount_must_be_positive_policy(amount), action=action, subject_id=order_id)

        order = await self._load_order(order_id, expected_version)
        self._require_status(order, INVOICED_STATUSES, action)
        self._require_memo(action, memo, order.id)

        payment = Payment(amount=amount, timestamp=self._clock.now_utc(), comment=memo.strip())
        paid = replace(order, payments=order.payments + (payment,))
        outstanding = compute_profitability(paid).outstanding
        target = S.FULFILLED if outstanding == 0 else S.PARTIAL_PAYMENT
        self._require_transition(order, target, action)

        after = self._advance(
            paid,
            actor=actor,
            action=action,
            message=f"Payment of {amount} recorded, outstanding {outstanding}: {memo.strip()}",
            to_status=target,
        )
        return await self._commit(order, after, action=action, actor=actor)

    async def cancel_payment(
        self,
        order_id: str,
        payment_index: int,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Remove one payment. A FULFILLED order whose balance reopens moves
        back to PARTIAL_PAYMENT; every other status is left as it is.
        """
        action = actions.PAYMENT_CANCEL
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, PAYMENT_CANCELLABLE, action)
        self._refuse(payment_index_must_exist_policy(order, payment_index), action=action, subject_id=order.id)
        self._require_memo(action, memo, order.id)

        removed = order.payments[payment_index]
        remaining = order.payments[:payment_index] + order.payments[payment_index + 1:]
        unpaid = replace(order, payments=remaining)
        outstanding = compute_profitability(unpaid).outstanding

        target = order.status
        if order.status == S.FULFILLED and outstanding > 0:
            target = S.PARTIAL_PAYMENT
            self._require_transition(order, target, action, reversal=True)

        after = self._advance(
            unpaid,
            actor=actor,
            action=action,
            message=(
                f"Payment of {removed.amount} cancelled, outstanding {outstanding}: "
                f"{memo.strip()}"
            ),
            to_status=target,
        )
        return await self._commit(order, after, action=action, actor=actor)


