"""
Nexus Orders Engine tests - operational workflow.

Intake, technical review, sourcing, production, hub and delivery,
driven end to end against the in-memory store.
"""

import asyncio
import itertools
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.commands.errors import (
    EntityNotFound,
    InvalidTransition,
    PermissionDenied,
    ValidationError,
)
from core.commands.rejection import ReasonCode
from core.config.settings import InMemorySettingsStore, OperationalSettings
from core.primitives.actor import Actor, Role
from core.time.clock import FixedClock
from engines.orders.compliance import logging_compliance_violation
from engines.orders.models import Customer, LineItem, ManufacturingComponent, Order
from engines.orders.services import OrderDraft, OrderLifecycleService, OrderWorkflowService
from engines.orders.sla import evaluate_sla
from engines.orders.status import ComponentStatus, OrderStatus
from engines.orders.store import InMemoryOrderStore

S = OrderStatus
NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

DESK = Actor.human("mona", "Mona (Orders)", roles={Role.ORDER_MANAGEMENT})
PROCUREMENT = Actor.human("hany", "Hany (Procurement)", roles={Role.PROCUREMENT})
FACTORY = Actor.human("karim", "Karim (Plant)", roles={Role.FACTORY})
FINANCE = Actor.human("fatma", "Fatma (Finance)", roles={Role.FINANCE})

DELTA = Customer(id="cu-1", name="Delta Steel", payment_term_days=45)
NILE = Customer(id="cu-2", name="Nile Cables", is_hold=True, hold_reason="Overdue invoices")


def panel(price=1000, components=None):
    if components is None:
        components = [
            ManufacturingComponent(
                id="c-1", description="Busbar set", quantity=1, unit_cost=600,
                source="PROCUREMENT", status=ComponentStatus.ORDERED,
            ),
            ManufacturingComponent(
                id="c-2", description="Enclosure", quantity=1, unit_cost=0,
                source="STOCK", status=ComponentStatus.AVAILABLE,
            ),
        ]
    return LineItem(
        id="it-1",
        description="Distribution panel",
        quantity=2,
        price_per_unit=price,
        tax_percent=14,
        components=components,
    )


def draft(reference="PO-7781", customer_id="cu-1", **overrides):
    kwargs = dict(
        customer_reference_number=reference,
        order_date=NOW - timedelta(hours=2),
        items=[panel()],
        customer_id=customer_id,
    )
    kwargs.update(overrides)
    return OrderDraft(**kwargs)


def make_services(*orders, settings=None):
    store = InMemoryOrderStore(orders=orders, customers=[DELTA, NILE])
    clock = FixedClock(NOW)
    counter = itertools.count(1)
    common = dict(
        store=store,
        clock=clock,
        settings_store=InMemorySettingsStore(settings or OperationalSettings()),
    )
    workflow = OrderWorkflowService(id_factory=lambda: f"ord-{next(counter)}", **common)
    lifecycle = OrderLifecycleService(**common)
    return workflow, lifecycle, store, clock


class YieldingStore(InMemoryOrderStore):
    """Yields to the event loop after listing orders, letting intakes interleave."""

    async def get_orders(self):
        orders = await super().get_orders()
        await asyncio.sleep(0)
        return orders


def logged(workflow, **draft_overrides):
    return asyncio.run(workflow.log_order(draft(**draft_overrides), DESK))


def reviewed(workflow, **draft_overrides):
    order = logged(workflow, **draft_overrides)
    asyncio.run(workflow.begin_technical_review(order.id, DESK))
    asyncio.run(workflow.set_item_acceptance(order.id, "it-1", True, DESK))
    return asyncio.run(workflow.finalize_technical_review(order.id, DESK))


# ══════════════════════════════════════════════════════════════
# INTAKE
# ══════════════════════════════════════════════════════════════

class TestLogOrder:
    def test_logged_order(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow)

        assert order.id == "ord-1"
        assert order.status == S.LOGGED
        assert order.internal_order_number == "INT-00001/2026"
        assert order.customer_name == "Delta Steel"
        assert order.payment_sla_days == 45
        assert order.data_entry_timestamp == NOW
        assert order.logs[0].status == "LOGGED"
        assert order.logs[0].user == "mona"
        assert order.items[0].order_number == "INT-00001/2026"

    def test_numbers_are_sequential(self):
        workflow, _, _, _ = make_services()
        first = logged(workflow, reference="PO-1")
        second = logged(workflow, reference="PO-2")
        assert (first.internal_order_number, second.internal_order_number) == (
            "INT-00001/2026", "INT-00002/2026",
        )

    def test_duplicate_reference_refused(self):
        workflow, _, store, _ = make_services()
        logged(workflow)
        with pytest.raises(ValidationError) as excinfo:
            logged(workflow, reference=" po-7781 ")
        assert excinfo.value.code == ReasonCode.DUPLICATE_REFERENCE
        assert len(asyncio.run(store.get_orders())) == 1

    def test_concurrent_intakes_with_one_reference(self, caplog):
        store = YieldingStore(customers=[DELTA])
        counter = itertools.count(1)
        workflow = OrderWorkflowService(
            store=store, clock=FixedClock(NOW), id_factory=lambda: f"ord-{next(counter)}",
        )

        async def race():
            return await asyncio.gather(
                workflow.log_order(draft(), DESK),
                workflow.log_order(draft(reference="PO-7781 "), DESK),
                return_exceptions=True,
            )

        with caplog.at_level(logging.INFO, logger="nexus.orders"):
            results = asyncio.run(race())
        refused = [r for r in results if isinstance(r, ValidationError)]
        committed = [r for r in results if isinstance(r, Order)]
        assert len(refused) == 1
        assert len(committed) == 1
        assert refused[0].code == ReasonCode.DUPLICATE_REFERENCE
        assert [o.id for o in asyncio.run(store.get_orders())] == [committed[0].id]
        assert "DUPLICATE_REFERENCE" in caplog.text

    def test_reference_of_closed_order_may_be_reused(self):
        closed = Order(
            id="old",
            internal_order_number="INT-00099/2025",
            customer_reference_number="PO-7781",
            customer_name="Delta Steel",
            order_date=NOW - timedelta(days=90),
            data_entry_timestamp=NOW - timedelta(days=90),
            status=S.REJECTED,
            rejection_reason="Spec mismatch",
        )
        workflow, _, _, _ = make_services(closed)
        assert logged(workflow).status == S.LOGGED

    def test_items_required(self):
        workflow, _, _, _ = make_services()
        with pytest.raises(ValidationError) as excinfo:
            logged(workflow, items=[])
        assert excinfo.value.code == ReasonCode.INVALID_ORDER_DATA

    def test_unknown_customer(self):
        workflow, _, _, _ = make_services()
        with pytest.raises(EntityNotFound) as excinfo:
            logged(workflow, customer_id="cu-404")
        assert excinfo.value.code == ReasonCode.CUSTOMER_NOT_FOUND

    def test_customer_name_required(self):
        workflow, _, _, _ = make_services()
        with pytest.raises(ValidationError):
            logged(workflow, customer_id=None)

    def test_walk_in_customer(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow, customer_id=None, customer_name="Cairo Metro", payment_sla_days=15)
        assert order.customer_name == "Cairo Metro"
        assert order.payment_sla_days == 15

    def test_customer_on_credit_hold_is_flagged(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow, customer_id="cu-2")
        assert order.status == S.LOGGED
        assert "credit hold" in order.logs[0].message
        assert "Overdue invoices" in order.logs[0].message

    def test_factory_may_not_log_orders(self):
        workflow, _, _, _ = make_services()
        with pytest.raises(PermissionDenied):
            asyncio.run(workflow.log_order(draft(), FACTORY))

    def test_late_entry_is_flagged_by_compliance(self):
        workflow, _, _, _ = make_services()
        assert logging_compliance_violation(logged(workflow), OperationalSettings())

    def test_draft_requires_reference(self):
        with pytest.raises(ValueError):
            draft(reference="  ")


# ══════════════════════════════════════════════════════════════
# TECHNICAL REVIEW
# ══════════════════════════════════════════════════════════════

class TestTechnicalReview:
    def test_review_to_sourcing(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        assert order.status == S.WAITING_SUPPLIERS
        assert order.items[0].is_accepted

    def test_acceptance_logged_on_item_and_order(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow)
        asyncio.run(workflow.begin_technical_review(order.id, DESK))
        accepted = asyncio.run(workflow.set_item_acceptance(order.id, "it-1", True, DESK))
        assert accepted.status == S.TECHNICAL_REVIEW
        assert accepted.items[0].logs[-1].message == "Item accepted"
        assert accepted.logs[-1].status is None

    def test_finalize_needs_every_item_accepted(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow)
        asyncio.run(workflow.begin_technical_review(order.id, DESK))
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(workflow.finalize_technical_review(order.id, DESK))
        assert excinfo.value.code == ReasonCode.ITEMS_NOT_ACCEPTED

    def test_thin_margin_parks_order(self):
        workflow, lifecycle, _, _ = make_services()
        # revenue 620 against cost 600
        order = reviewed(workflow, items=[panel(price=310)])
        assert order.status == S.NEGATIVE_MARGIN
        assert "below minimum" in order.logs[-1].message

        released = asyncio.run(lifecycle.release_margin_block(order.id, "Approved by GM", FINANCE))
        assert released.status == S.WAITING_SUPPLIERS

    def test_minimum_margin_is_configurable(self):
        workflow, _, _, _ = make_services(settings=OperationalSettings(minimum_margin_pct=Decimal("300")))
        assert reviewed(workflow).status == S.NEGATIVE_MARGIN

    def test_unknown_item(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow)
        with pytest.raises(EntityNotFound) as excinfo:
            asyncio.run(workflow.set_item_acceptance(order.id, "it-9", True, DESK))
        assert excinfo.value.code == ReasonCode.ITEM_NOT_FOUND

    def test_rollback_clears_acceptance(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        rolled = asyncio.run(workflow.rollback_to_logged(order.id, "Customer changed quantities", DESK))
        assert rolled.status == S.LOGGED
        assert not rolled.items[0].is_accepted

    def test_rollback_needs_memo(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        with pytest.raises(ValidationError):
            asyncio.run(workflow.rollback_to_logged(order.id, "", DESK))

    def test_rollback_from_logged_refused(self):
        workflow, _, _, _ = make_services()
        order = logged(workflow)
        with pytest.raises(InvalidTransition):
            asyncio.run(workflow.rollback_to_logged(order.id, "memo", DESK))

    def test_review_sla_anchored_on_review_start(self):
        workflow, _, store, clock = make_services()
        order = logged(workflow)
        clock.advance(hours=1)
        asyncio.run(workflow.begin_technical_review(order.id, DESK))
        clock.advance(hours=3)

        current = asyncio.run(store.get_order(order.id))
        sla = evaluate_sla(current, clock.now_utc(), OperationalSettings())
        assert sla.is_breached
        assert sla.display == "1h 0m"


# ══════════════════════════════════════════════════════════════
# SOURCING & PRODUCTION
# ══════════════════════════════════════════════════════════════

class TestSourcing:
    def test_last_component_moves_to_factory(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        updated = asyncio.run(workflow.receive_component(order.id, "it-1", "c-1", PROCUREMENT))
        assert updated.status == S.WAITING_FACTORY
        assert updated.items[0].find_component("c-1").status == ComponentStatus.RECEIVED
        assert updated.items[0].find_component("c-1").status_updated_at == NOW

    def test_outstanding_component_keeps_waiting(self):
        workflow, _, _, _ = make_services()
        components = [
            ManufacturingComponent(id="c-1", description="Busbar", quantity=1, unit_cost=300,
                                   source="PROCUREMENT", status="ORDERED"),
            ManufacturingComponent(id="c-2", description="Breaker", quantity=1, unit_cost=300,
                                   source="PROCUREMENT", status="ORDERED"),
        ]
        order = reviewed(workflow, items=[panel(components=components)])
        updated = asyncio.run(workflow.receive_component(order.id, "it-1", "c-1", PROCUREMENT))
        assert updated.status == S.WAITING_SUPPLIERS
        assert updated.logs[-1].status is None

    def test_component_received_twice(self):
        workflow, _, _, _ = make_services()
        components = [
            ManufacturingComponent(id="c-1", description="Busbar", quantity=1, unit_cost=300,
                                   source="PROCUREMENT", status="ORDERED"),
            ManufacturingComponent(id="c-2", description="Breaker", quantity=1, unit_cost=300,
                                   source="PROCUREMENT", status="ORDERED"),
        ]
        order = reviewed(workflow, items=[panel(components=components)])
        asyncio.run(workflow.receive_component(order.id, "it-1", "c-1", PROCUREMENT))
        with pytest.raises(InvalidTransition):
            asyncio.run(workflow.receive_component(order.id, "it-1", "c-1", PROCUREMENT))

    def test_unknown_component(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        with pytest.raises(EntityNotFound) as excinfo:
            asyncio.run(workflow.receive_component(order.id, "it-1", "c-9", PROCUREMENT))
        assert excinfo.value.code == ReasonCode.COMPONENT_NOT_FOUND

    def test_production_marks_components(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        asyncio.run(workflow.receive_component(order.id, "it-1", "c-1", PROCUREMENT))
        started = asyncio.run(workflow.start_production(order.id, FACTORY))
        assert started.status == S.MANUFACTURING
        assert started.logs[-1].message == "In Factory"
        assert {c.status for c in started.iter_components()} == {ComponentStatus.IN_MANUFACTURING}

        finished = asyncio.run(workflow.finish_production(order.id, FACTORY))
        assert finished.status == S.MANUFACTURING_COMPLETED
        assert {c.status for c in finished.iter_components()} == {ComponentStatus.MANUFACTURED}

    def test_failed_test_goes_back_to_factory(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        asyncio.run(workflow.receive_component(order.id, "it-1", "c-1", PROCUREMENT))
        asyncio.run(workflow.start_production(order.id, FACTORY))
        asyncio.run(workflow.finish_production(order.id, FACTORY))
        asyncio.run(workflow.start_quality_test(order.id, FACTORY))
        assert asyncio.run(workflow.start_production(order.id, FACTORY)).status == S.MANUFACTURING

    def test_production_cannot_start_while_sourcing(self):
        workflow, _, _, _ = make_services()
        order = reviewed(workflow)
        with pytest.raises(InvalidTransition):
            asyncio.run(workflow.start_production(order.id, FACTORY))


# ══════════════════════════════════════════════════════════════
# END TO END
# ══════════════════════════════════════════════════════════════

class TestFullLifecycle:
    def test_logged_to_fulfilled(self):
        workflow, lifecycle, store, clock = make_services()
        order = reviewed(workflow)
        oid = order.id

        steps = [
            lambda: workflow.receive_component(oid, "it-1", "c-1", PROCUREMENT),
            lambda: workflow.start_production(oid, FACTORY),
            lambda: workflow.finish_production(oid, FACTORY),
            lambda: workflow.start_quality_test(oid, FACTORY),
            lambda: workflow.dispatch_to_hub(oid, FACTORY),
            lambda: workflow.receive_at_hub(oid, DESK),
            lambda: lifecycle.issue_invoice(oid, FINANCE),
            lambda: workflow.release_for_delivery(oid, DESK),
            lambda: workflow.dispatch_to_customer(oid, DESK),
            lambda: workflow.confirm_delivery(oid, b"%PDF-1.7 signed", "pod-7781.pdf", DESK),
            lambda: lifecycle.record_payment(oid, "2280", "Wire transfer", FINANCE),
        ]
        for step in steps:
            clock.advance(seconds=600)
            order = asyncio.run(step())

        assert order.status == S.FULFILLED
        assert order.invoice_number == "INV-00001/2026"
        assert asyncio.run(store.get_order(oid)).version == len(steps) + 3
        assert store.get_attachment(order.proof_of_delivery_ref) == b"%PDF-1.7 signed"
        assert [e.status for e in order.logs if e.status] == [
            "LOGGED",
            "TECHNICAL_REVIEW",
            "WAITING_SUPPLIERS",
            "WAITING_FACTORY",
            "MANUFACTURING",
            "MANUFACTURING_COMPLETED",
            "UNDER_TEST",
            "TRANSITION_TO_STOCK",
            "IN_PRODUCT_HUB",
            "INVOICED",
            "HUB_RELEASED",
            "DELIVERY",
            "DELIVERED",
            "FULFILLED",
        ]
        timestamps = [e.timestamp for e in order.logs]
        assert timestamps == sorted(timestamps)

    def test_deposit_before_release_still_delivers(self):
        invoiced = Order(
            id="ord-8",
            internal_order_number="INT-00008/2026",
            customer_reference_number="PO-8",
            customer_name="Delta Steel",
            order_date=NOW - timedelta(days=3),
            data_entry_timestamp=NOW - timedelta(days=3),
            status=S.INVOICED,
            invoice_number="INV-00002/2026",
            items=[panel()],
        )
        workflow, lifecycle, _, _ = make_services(invoiced)
        deposit = asyncio.run(lifecycle.record_payment("ord-8", 1000, "Deposit", FINANCE))
        assert deposit.status == S.PARTIAL_PAYMENT

        assert asyncio.run(workflow.release_for_delivery("ord-8", DESK)).status == S.HUB_RELEASED
        asyncio.run(workflow.dispatch_to_customer("ord-8", DESK))
        delivered = asyncio.run(workflow.confirm_delivery("ord-8", b"%PDF signed", "pod-8.pdf", DESK))
        assert delivered.status == S.DELIVERED
        assert [p.amount for p in delivered.payments] == [Decimal("1000")]

        paid = asyncio.run(lifecycle.record_payment("ord-8", 1280, "Balance", FINANCE))
        assert paid.status == S.FULFILLED

    def test_empty_proof_of_delivery_refused(self):
        released = Order(
            id="ord-9",
            internal_order_number="INT-00009/2026",
            customer_reference_number="PO-9",
            customer_name="Delta Steel",
            order_date=NOW - timedelta(days=3),
            data_entry_timestamp=NOW - timedelta(days=3),
            status=S.HUB_RELEASED,
            invoice_number="INV-00003/2026",
            items=[panel()],
        )
        workflow, _, store, _ = make_services(released)
        with pytest.raises(ValidationError):
            asyncio.run(workflow.confirm_delivery("ord-9", b"", "pod.pdf", DESK))
        unchanged = asyncio.run(store.get_order("ord-9"))
        assert unchanged.status == S.HUB_RELEASED
        assert unchanged.proof_of_delivery_ref is None
