"""Nexus Orders Engine tests - logging-delay compliance monitor."""

import logging
from datetime import datetime, timedelta, timezone

from core.config.settings import OperationalSettings
from engines.orders.compliance import (
    LOGGING_DELAY,
    evaluate_logging_compliance,
    logging_compliance_violation,
    scan_orders,
)
from engines.orders.models import Order
from engines.orders.status import OrderStatus

NOW = datetime(2026, 3, 2, 14, 0, 0, tzinfo=timezone.utc)
SETTINGS = OperationalSettings()


def order(delay_hours, order_id="ord-1", **overrides):
    kwargs = dict(
        id=order_id,
        internal_order_number=f"INT-{order_id}",
        customer_reference_number=f"PO-{order_id}",
        customer_name="Delta Steel",
        order_date=NOW - timedelta(hours=delay_hours),
        data_entry_timestamp=NOW,
    )
    kwargs.update(overrides)
    return Order(**kwargs)


class TestLoggingCompliance:
    def test_late_entry_is_a_violation(self):
        finding = evaluate_logging_compliance(order(2), SETTINGS)
        assert finding.rule == LOGGING_DELAY
        assert finding.delay_hours == 2
        assert finding.threshold_hours == 1
        assert finding.violation

    def test_threshold_is_exclusive(self):
        assert not logging_compliance_violation(order(1), SETTINGS)

    def test_prompt_entry(self):
        assert not logging_compliance_violation(order(0.25), SETTINGS)

    def test_threshold_from_settings(self):
        assert not logging_compliance_violation(order(2), OperationalSettings(logging_delay_threshold_hrs=3))

    def test_journal_key(self):
        assert evaluate_logging_compliance(order(2), SETTINGS).journal_key == "logging_delay_ord-1"

    def test_to_dict(self):
        data = evaluate_logging_compliance(order(2), SETTINGS).to_dict()
        assert data["violation"] is True
        assert data["internal_order_number"] == "INT-ord-1"

    def test_does_not_touch_order(self):
        o = order(5)
        evaluate_logging_compliance(o, SETTINGS)
        assert o.logs == ()
        assert o.version == 0


class TestScanOrders:
    def test_skips_closed_orders(self, caplog):
        orders = [
            order(5, "late"),
            order(0, "prompt"),
            order(5, "done", status=OrderStatus.FULFILLED),
            order(5, "dead", status=OrderStatus.REJECTED, rejection_reason="spec mismatch"),
        ]
        with caplog.at_level(logging.INFO, logger="nexus.orders"):
            findings = scan_orders(orders, SETTINGS)

        assert [f.order_id for f in findings] == ["late"]
        assert "1 logging-delay violation" in caplog.text

    def test_empty(self):
        assert scan_orders([], SETTINGS) == []
