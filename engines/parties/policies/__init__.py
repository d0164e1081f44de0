"""
Nexus Parties Engine - Policies
================================
Toggle guards for customer credit holds and supplier blacklisting.
"""

from __future__ import annotations

from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.orders.models import Customer, Supplier


def customer_hold_toggle_policy(
    customer: Customer,
    hold_on: bool,
) -> Optional[RejectionReason]:
    if customer.is_hold == hold_on:
        return RejectionReason(
            code=ReasonCode.ALREADY_IN_HOLD if hold_on else ReasonCode.NOT_IN_HOLD,
            message=(
                f"Customer '{customer.name}' is "
                f"{'already' if hold_on else 'not'} on credit hold."
            ),
            policy_name="customer_hold_toggle_policy",
        )
    return None


def supplier_blacklist_toggle_policy(
    supplier: Supplier,
    blacklist: bool,
) -> Optional[RejectionReason]:
    if supplier.is_blacklisted == blacklist:
        return RejectionReason(
            code=ReasonCode.ALREADY_BLACKLISTED if blacklist else ReasonCode.NOT_BLACKLISTED,
            message=(
                f"Supplier '{supplier.name}' is "
                f"{'already' if blacklist else 'not'} blacklisted."
            ),
            policy_name="supplier_blacklist_toggle_policy",
        )
    return None
