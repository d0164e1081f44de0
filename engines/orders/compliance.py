"""
Nexus Orders Engine - Compliance Monitor
=========================================
Process-entry compliance flags derived from order timestamps.

The logging-delay check compares the customer PO date with the moment
the order was entered into the system. A finding is a read-only
annotation: it is recomputed on every scan and never mutates the order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List

from core.config.settings import OperationalSettings
from core.time.clock import ensure_aware
from engines.orders.models import Order

logger = logging.getLogger("nexus.orders")

LOGGING_DELAY = "logging_delay"


@dataclass(frozen=True)
class ComplianceFinding:
    order_id: str
    internal_order_number: str
    customer_name: str
    rule: str
    order_date: datetime
    data_entry_timestamp: datetime
    delay_hours: float
    threshold_hours: float

    @property
    def violation(self) -> bool:
        return self.delay_hours > self.threshold_hours

    @property
    def journal_key(self) -> str:
        """Stable key for de-duplicating alerts raised from this finding."""
        return f"{self.rule}_{self.order_id}"

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "internal_order_number": self.internal_order_number,
            "customer_name": self.customer_name,
            "rule": self.rule,
            "order_date": self.order_date.isoformat(),
            "data_entry_timestamp": self.data_entry_timestamp.isoformat(),
            "delay_hours": self.delay_hours,
            "threshold_hours": self.threshold_hours,
            "violation": self.violation,
        }


def evaluate_logging_compliance(
    order: Order,
    settings: OperationalSettings,
) -> ComplianceFinding:
    delay = ensure_aware(order.data_entry_timestamp) - ensure_aware(order.order_date)
    return ComplianceFinding(
        order_id=order.id,
        internal_order_number=order.internal_order_number,
        customer_name=order.customer_name,
        rule=LOGGING_DELAY,
        order_date=order.order_date,
        data_entry_timestamp=order.data_entry_timestamp,
        delay_hours=delay.total_seconds() / 3600,
        threshold_hours=settings.logging_delay_threshold_hrs,
    )


def logging_compliance_violation(order: Order, settings: OperationalSettings) -> bool:
    return evaluate_logging_compliance(order, settings).violation


def scan_orders(
    orders: Iterable[Order],
    settings: OperationalSettings,
) -> List[ComplianceFinding]:
    """Violations among active orders. FULFILLED and REJECTED are skipped."""
    findings = []
    for order in orders:
        if not order.is_active:
            continue
        finding = evaluate_logging_compliance(order, settings)
        if finding.violation:
            findings.append(finding)
    logger.info(
        f"Compliance scan: {len(findings)} logging-delay violation(s) "
        f"(threshold {settings.logging_delay_threshold_hrs}h)"
    )
    return findings
