"""
Nexus Orders Engine - Profitability Calculator
===============================================
Revenue, cost, margin, markup and the outstanding balance of an order.

Pure functions of the order snapshot (plus settings for the margin gate).
Nothing here is stored; every read recomputes from the committed order.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from core.config.settings import OperationalSettings
from engines.orders.models import LineItem, Order

ZERO = Decimal(0)
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class ProfitabilitySnapshot:
    revenue: Decimal
    gross_revenue: Decimal
    cost: Decimal
    margin_pct: Decimal
    markup_pct: Decimal
    paid: Decimal
    outstanding: Decimal

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.cost

    def to_dict(self) -> dict:
        return {
            "revenue": str(self.revenue),
            "gross_revenue": str(self.gross_revenue),
            "cost": str(self.cost),
            "margin_pct": str(self.margin_pct),
            "markup_pct": str(self.markup_pct),
            "paid": str(self.paid),
            "outstanding": str(self.outstanding),
        }


def item_cost(item: LineItem) -> Decimal:
    """Sum of component quantity x unit cost; a missing unit cost counts as 0."""
    return sum((component.line_cost for component in item.components), ZERO)


def compute_profitability(order: Order) -> ProfitabilitySnapshot:
    revenue = sum((item.net for item in order.items), ZERO)
    gross_revenue = sum((item.gross for item in order.items), ZERO)
    cost = sum((item_cost(item) for item in order.items), ZERO)
    paid = sum((payment.amount for payment in order.payments), ZERO)

    margin_pct = (revenue - cost) / revenue * HUNDRED if revenue > 0 else ZERO

    # Zero cost with revenue reads as a 100% markup rather than infinity.
    if cost > 0:
        markup_pct = (revenue - cost) / cost * HUNDRED
    elif revenue > 0:
        markup_pct = HUNDRED
    else:
        markup_pct = ZERO

    return ProfitabilitySnapshot(
        revenue=revenue,
        gross_revenue=gross_revenue,
        cost=cost,
        margin_pct=margin_pct,
        markup_pct=markup_pct,
        paid=paid,
        outstanding=max(ZERO, gross_revenue - paid),
    )


def is_margin_breach(
    snapshot: ProfitabilitySnapshot,
    settings: OperationalSettings,
) -> bool:
    return snapshot.markup_pct < settings.minimum_margin_pct
