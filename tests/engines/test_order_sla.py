"""Nexus Orders Engine tests - SLA sentinel."""

from datetime import datetime, timedelta, timezone

import pytest

from core.audit.models import LogEntry
from core.config.settings import OperationalSettings
from engines.orders.models import LineItem, ManufacturingComponent, Order
from engines.orders.sla import (
    breached_orders,
    component_limit_hours,
    evaluate_component_sla,
    evaluate_item_sla,
    evaluate_sla,
    format_duration,
)
from engines.orders.status import ComponentStatus, OrderStatus

NOW = datetime(2026, 3, 2, 14, 0, 0, tzinfo=timezone.utc)
SETTINGS = OperationalSettings()


def entry(hours_ago, status=None, message="moved"):
    return LogEntry(timestamp=NOW - timedelta(hours=hours_ago), message=message, user="u-1", status=status)


def order(status, logs=(), order_id="ord-1", entered_hours_ago=48, **overrides):
    kwargs = dict(
        id=order_id,
        internal_order_number=f"INT-{order_id}",
        customer_reference_number=f"PO-{order_id}",
        customer_name="Delta Steel",
        order_date=NOW - timedelta(hours=entered_hours_ago),
        data_entry_timestamp=NOW - timedelta(hours=entered_hours_ago),
        status=status,
        logs=logs,
    )
    kwargs.update(overrides)
    return Order(**kwargs)


class TestFormatDuration:
    @pytest.mark.parametrize("ms, expected", [
        (0, "0m"),
        (59 * 60_000, "59m"),
        (60 * 60_000, "1h 0m"),
        (90 * 60_000, "1h 30m"),
        (24 * 3_600_000, "24h 0m"),
        (25 * 3_600_000, "1d 1h"),
        (50 * 3_600_000 + 59 * 60_000, "2d 2h"),
    ])
    def test_format(self, ms, expected):
        assert format_duration(ms) == expected


class TestEvaluateSla:
    def test_waiting_factory_breach(self):
        o = order(OrderStatus.WAITING_FACTORY, logs=[entry(6, OrderStatus.WAITING_FACTORY.value)])
        sla = evaluate_sla(o, NOW, SETTINGS)

        assert sla.tracked
        assert sla.limit_hours == 5
        assert sla.is_breached
        assert sla.remaining_ms == -3_600_000
        assert sla.display == "1h 0m"

    def test_within_limit(self):
        o = order(OrderStatus.TECHNICAL_REVIEW, logs=[entry(0.5, "TECHNICAL_REVIEW")])
        sla = evaluate_sla(o, NOW, SETTINGS)
        assert not sla.is_breached
        assert sla.remaining_ms == 90 * 60_000
        assert sla.display == "1h 30m"

    def test_latest_entry_for_status_is_anchor(self):
        logs = [
            entry(30, "WAITING_SUPPLIERS"),
            entry(20, "IN_HOLD"),
            entry(1, "WAITING_SUPPLIERS"),
        ]
        sla = evaluate_sla(order(OrderStatus.WAITING_SUPPLIERS, logs=logs), NOW, SETTINGS)
        assert sla.anchor == NOW - timedelta(hours=1)
        assert not sla.is_breached

    def test_informational_entries_do_not_reset_anchor(self):
        logs = [entry(3, "TECHNICAL_REVIEW"), entry(0, None, "Item accepted")]
        sla = evaluate_sla(order(OrderStatus.TECHNICAL_REVIEW, logs=logs), NOW, SETTINGS)
        assert sla.anchor == NOW - timedelta(hours=3)
        assert sla.is_breached

    def test_falls_back_to_data_entry_timestamp(self):
        o = order(OrderStatus.LOGGED, entered_hours_ago=2)
        sla = evaluate_sla(o, NOW, SETTINGS)
        assert sla.anchor == o.data_entry_timestamp
        assert sla.elapsed_ms == 2 * 3_600_000
        assert sla.is_breached

    def test_untracked_state_never_breaches(self):
        o = order(
            OrderStatus.IN_HOLD,
            logs=[entry(500, "IN_HOLD")],
            previous_status=OrderStatus.LOGGED,
            hold_reason="credit",
        )
        sla = evaluate_sla(o, NOW, SETTINGS)
        assert not sla.tracked
        assert not sla.is_breached
        assert sla.display == ""

    def test_repeat_evaluation_is_identical(self):
        o = order(OrderStatus.MANUFACTURING, logs=[entry(4, "MANUFACTURING")])
        assert evaluate_sla(o, NOW, SETTINGS) == evaluate_sla(o, NOW, SETTINGS)

    def test_settings_change_applies_immediately(self):
        o = order(OrderStatus.WAITING_FACTORY, logs=[entry(6, "WAITING_FACTORY")])
        assert not evaluate_sla(o, NOW, OperationalSettings(waiting_factory_limit_hrs=8)).is_breached

    def test_payment_terms_in_days(self):
        o = order(
            OrderStatus.DELIVERED,
            logs=[entry(24 * 11, "DELIVERED")],
            payment_sla_days=10,
            invoice_number="INV-00001/2026",
            entered_hours_ago=24 * 20,
        )
        sla = evaluate_sla(o, NOW, SETTINGS)
        assert sla.limit_hours == 240
        assert sla.is_breached
        assert sla.display == "24h 0m"

    def test_to_dict(self):
        o = order(OrderStatus.WAITING_FACTORY, logs=[entry(6, "WAITING_FACTORY")])
        data = evaluate_sla(o, NOW, SETTINGS).to_dict()
        assert data["is_breached"] is True
        assert data["display"] == "1h 0m"


class TestItemSla:
    def test_item_anchor_uses_item_logs(self):
        item = LineItem(
            id="it-1",
            description="Panel",
            quantity=1,
            price_per_unit=10,
            logs=[entry(1, "TECHNICAL_REVIEW")],
        )
        o = order(OrderStatus.TECHNICAL_REVIEW, logs=[entry(5, "TECHNICAL_REVIEW")], items=[item])
        assert evaluate_sla(o, NOW, SETTINGS).is_breached
        assert not evaluate_item_sla(item, o, NOW, SETTINGS).is_breached


class TestComponentSla:
    @pytest.mark.parametrize("status, hours", [
        (ComponentStatus.PENDING_OFFER, 2),
        (ComponentStatus.RFP_SENT, 24),
        (ComponentStatus.AWARDED, 1),
        (ComponentStatus.ORDERED, 72),
        (ComponentStatus.RECEIVED, 0),
        (ComponentStatus.AVAILABLE, 0),
    ])
    def test_component_limits(self, status, hours):
        component = ManufacturingComponent(id="c-1", description="Busbar", quantity=1, status=status)
        assert component_limit_hours(component, SETTINGS) == hours

    def test_rfp_overdue(self):
        component = ManufacturingComponent(
            id="c-1",
            description="Busbar",
            quantity=1,
            status=ComponentStatus.RFP_SENT,
            status_updated_at=NOW - timedelta(hours=30),
        )
        sla = evaluate_component_sla(component, order(OrderStatus.WAITING_SUPPLIERS), NOW, SETTINGS)
        assert sla.is_breached
        assert sla.display == "6h 0m"


class TestBreachedOrders:
    def test_sorted_worst_first(self):
        orders = [
            order(OrderStatus.WAITING_FACTORY, logs=[entry(6, "WAITING_FACTORY")], order_id="b"),
            order(OrderStatus.WAITING_FACTORY, logs=[entry(9, "WAITING_FACTORY")], order_id="c"),
            order(OrderStatus.WAITING_FACTORY, logs=[entry(6, "WAITING_FACTORY")], order_id="a"),
            order(OrderStatus.WAITING_FACTORY, logs=[entry(1, "WAITING_FACTORY")], order_id="ok"),
        ]
        board = breached_orders(orders, NOW, SETTINGS)
        assert [o.id for o, _ in board] == ["c", "a", "b"]
