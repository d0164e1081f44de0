"""
Nexus Parties Engine - Application Service
===========================================
Customer credit holds and supplier blacklisting.

Same contract as the order actions: role check, toggle guard, mandatory
memo, one appended log entry, compare-and-swap commit.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from core.audit.functions import append_entry, create_log_entry, next_entry_time
from core.commands.errors import (
    ConcurrencyConflict,
    EntityNotFound,
    PersistenceFailure,
    error_for,
)
from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.actor import Actor
from core.time.clock import Clock, SystemClock
from engines.orders import actions
from engines.orders.models import Customer, Supplier
from engines.orders.policies import actor_must_hold_role_policy, memo_must_be_present_policy
from engines.orders.store import OrderStore
from engines.parties.policies import (
    customer_hold_toggle_policy,
    supplier_blacklist_toggle_policy,
)

logger = logging.getLogger("nexus.parties")


class PartyService:
    def __init__(self, *, store: OrderStore, clock: Optional[Clock] = None):
        self._store = store
        self._clock = clock or SystemClock()

    def _check(self, reason: Optional[RejectionReason], action: str, subject_id: str) -> None:
        if reason is None:
            return
        logger.info(f"{action} refused for {subject_id}: {reason.code}")
        raise error_for(reason)

    def _require_memo(self, action: str, memo: Optional[str], subject_id: str) -> None:
        self._check(memo_must_be_present_policy(action, memo), action, subject_id)

    async def _save(self, save, entity, expected_version: int, action: str, actor: Actor):
        try:
            stored = await save(entity, expected_version)
        except ConcurrencyConflict:
            logger.info(f"{action} on {entity.id} lost a concurrent update")
            raise
        except PersistenceFailure:
            logger.error(f"{action} on {entity.id} could not be persisted", exc_info=True)
            raise
        logger.info(f"{action} on {entity.id} by {actor.actor_id} (v{stored.version})")
        return stored

    # ══════════════════════════════════════════════════════════
    # CUSTOMERS
    # ══════════════════════════════════════════════════════════

    async def set_customer_hold(
        self,
        customer_id: str,
        hold_on: bool,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Customer:
        """Put a customer on credit hold, or lift it."""
        action = actions.CUSTOMER_HOLD_SET if hold_on else actions.CUSTOMER_HOLD_RELEASE
        self._check(actor_must_hold_role_policy(actor, action), action, customer_id)

        customer = await self._store.get_customer(customer_id)
        if customer is None:
            raise EntityNotFound(RejectionReason(
                code=ReasonCode.CUSTOMER_NOT_FOUND,
                message=f"Customer '{customer_id}' not found.",
                policy_name="customer_must_exist_policy",
            ))
        if expected_version is not None and customer.version != expected_version:
            raise ConcurrencyConflict(customer_id, expected_version, customer.version)
        self._check(customer_hold_toggle_policy(customer, hold_on), action, customer_id)
        self._require_memo(action, memo, customer_id)

        verb = "placed on credit hold" if hold_on else "released from credit hold"
        entry = create_log_entry(
            actor=actor,
            message=f"Customer {verb}: {memo.strip()}",
            occurred_at=next_entry_time(customer.logs, self._clock.now_utc()),
            action=action,
        )
        updated = replace(
            customer,
            is_hold=hold_on,
            hold_reason=memo.strip() if hold_on else None,
            logs=append_entry(customer.logs, entry),
        )
        return await self._save(self._store.save_customer, updated, customer.version, action, actor)

    # ══════════════════════════════════════════════════════════
    # SUPPLIERS
    # ══════════════════════════════════════════════════════════

    async def blacklist_supplier(
        self,
        supplier_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Supplier:
        return await self._set_blacklist(supplier_id, True, memo, actor, expected_version)

    async def remove_supplier_blacklist(
        self,
        supplier_id: str,
        memo: str,
        actor: Actor,
        *,
        expected_version: Optional[int] = None,
    ) -> Supplier:
        return await self._set_blacklist(supplier_id, False, memo, actor, expected_version)

    async def _set_blacklist(
        self,
        supplier_id: str,
        blacklist: bool,
        memo: str,
        actor: Actor,
        expected_version: Optional[int],
    ) -> Supplier:
        action = actions.SUPPLIER_BLACKLIST if blacklist else actions.SUPPLIER_BLACKLIST_REMOVE
        self._check(actor_must_hold_role_policy(actor, action), action, supplier_id)

        supplier = await self._store.get_supplier(supplier_id)
        if supplier is None:
            raise EntityNotFound(RejectionReason(
                code=ReasonCode.SUPPLIER_NOT_FOUND,
                message=f"Supplier '{supplier_id}' not found.",
                policy_name="supplier_must_exist_policy",
            ))
        if expected_version is not None and supplier.version != expected_version:
            raise ConcurrencyConflict(supplier_id, expected_version, supplier.version)
        self._check(supplier_blacklist_toggle_policy(supplier, blacklist), action, supplier_id)
        self._require_memo(action, memo, supplier_id)

        verb = "blacklisted" if blacklist else "removed from blacklist"
        entry = create_log_entry(
            actor=actor,
            message=f"Supplier {verb}: {memo.strip()}",
            occurred_at=next_entry_time(supplier.logs, self._clock.now_utc()),
            action=action,
        )
        updated = replace(
            supplier,
            is_blacklisted=blacklist,
            blacklist_reason=memo.strip() if blacklist else None,
            logs=append_entry(supplier.logs, entry),
        )
        return await self._save(self._store.save_supplier, updated, supplier.version, action, actor)
