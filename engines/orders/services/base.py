"""
Nexus Orders Engine - Transition Runner
========================================
Shared machinery behind every order action:

    authorize → load → version precondition → state → memo
        → new snapshot (fields + appended log entry)
        → compare-and-swap commit

A refusal at any step raises before anything is written, so the stored
order is exactly what it was.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Collection, Optional

from core.audit.functions import append_entry, create_log_entry, next_entry_time
from core.commands.errors import (
    ConcurrencyConflict,
    EntityNotFound,
    OrderLifecycleError,
    PersistenceFailure,
    error_for,
)
from core.commands.rejection import ReasonCode, RejectionReason
from core.config.settings import InMemorySettingsStore, OperationalSettings, SettingsStore
from core.primitives.actor import Actor
from core.time.clock import Clock, SystemClock
from engines.orders.models import Order
from engines.orders.policies import (
    actor_must_hold_role_policy,
    memo_must_be_present_policy,
    status_must_be_one_of_policy,
    transition_must_be_allowed_policy,
)
from engines.orders.status import OrderStatus, status_meta
from engines.orders.store import OrderStore

logger = logging.getLogger("nexus.orders")


class OrderServiceBase:
    def __init__(
        self,
        *,
        store: OrderStore,
        settings_store: Optional[SettingsStore] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._settings_store = settings_store or InMemorySettingsStore()
        self._clock = clock or SystemClock()

    @property
    def settings(self) -> OperationalSettings:
        return self._settings_store.get_settings()

    # ── guards ────────────────────────────────────────────────

    def _refuse(self, reason: Optional[RejectionReason], *, action: str, subject_id: str) -> None:
        if reason is None:
            return
        logger.info(f"{action} refused for {subject_id}: {reason.code} ({reason.policy_name})")
        raise error_for(reason)

    def _authorize(self, actor: Actor, action: str, subject_id: str) -> None:
        self._refuse(actor_must_hold_role_policy(actor, action), action=action, subject_id=subject_id)

    def _require_memo(self, action: str, memo: Optional[str], subject_id: str) -> None:
        self._refuse(memo_must_be_present_policy(action, memo), action=action, subject_id=subject_id)

    def _require_status(
        self,
        order: Order,
        allowed: Collection[OrderStatus],
        action: str,
    ) -> None:
        self._refuse(status_must_be_one_of_policy(order, allowed, action), action=action, subject_id=order.id)

    def _require_transition(
        self,
        order: Order,
        to_status: OrderStatus,
        action: str,
        *,
        reversal: bool = False,
    ) -> None:
        self._refuse(
            transition_must_be_allowed_policy(order, to_status, reversal=reversal),
            action=action,
            subject_id=order.id,
        )

    # ── load / commit ─────────────────────────────────────────

    async def _load_order(self, order_id: str, expected_version: Optional[int] = None) -> Order:
        order = await self._store.get_order(order_id)
        if order is None:
            raise EntityNotFound(RejectionReason(
                code=ReasonCode.ORDER_NOT_FOUND,
                message=f"Order '{order_id}' not found.",
                policy_name="order_must_exist_policy",
            ))
        if expected_version is not None and order.version != expected_version:
            logger.info(
                f"Order {order_id}: caller expected version {expected_version}, "
                f"found {order.version}"
            )
            raise ConcurrencyConflict(order_id, expected_version, order.version)
        return order

    def _advance(
        self,
        order: Order,
        *,
        actor: Actor,
        action: str,
        message: str,
        to_status: Optional[OrderStatus] = None,
        next_step: Optional[str] = None,
        **changes,
    ) -> Order:
        """
        Build the next snapshot: field changes plus one appended log entry.
        The entry carries a status only when the status actually changes.
        """
        entered = to_status if to_status is not None and to_status != order.status else None
        entry = create_log_entry(
            actor=actor,
            message=message,
            occurred_at=next_entry_time(order.logs, self._clock.now_utc()),
            status=entered,
            action=action,
            next_step=next_step,
        )
        if to_status is not None:
            changes["status"] = to_status
        return replace(order, logs=append_entry(order.logs, entry), **changes)

    async def _commit(self, before: Order, after: Order, *, action: str, actor: Actor) -> Order:
        try:
            stored = await self._store.save_order(after, before.version)
        except ConcurrencyConflict:
            logger.info(f"{action} on {before.id} lost a concurrent update (version {before.version})")
            raise
        except PersistenceFailure:
            logger.error(f"{action} on {before.id} could not be persisted", exc_info=True)
            raise
        except OrderLifecycleError:
            raise
        logger.info(
            f"{action} on {before.id}: {before.status.value} → {stored.status.value} "
            f"by {actor.actor_id} (v{stored.version})"
        )
        return stored

    async def _transition(
        self,
        order_id: str,
        to_status: OrderStatus,
        actor: Actor,
        action: str,
        *,
        allowed_from: Collection[OrderStatus],
        memo: Optional[str] = None,
        expected_version: Optional[int] = None,
        next_step: Optional[str] = None,
        **changes,
    ) -> Order:
        """Plain status move with no side effects beyond `changes`."""
        self._authorize(actor, action, order_id)
        order = await self._load_order(order_id, expected_version)
        self._require_status(order, allowed_from, action)
        self._require_transition(order, to_status, action)
        self._require_memo(action, memo, order.id)

        label = status_meta(to_status).label
        message = f"{label}: {memo.strip()}" if memo and memo.strip() else label
        after = self._advance(
            order,
            actor=actor,
            action=action,
            message=message,
            to_status=to_status,
            next_step=next_step,
            **changes,
        )
        return await self._commit(order, after, action=action, actor=actor)
