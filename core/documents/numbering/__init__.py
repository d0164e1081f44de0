"""
Nexus Documents - Order and Invoice Numbering
==============================================
"""

from core.documents.numbering.engine import (
    SequenceState,
    build_suffix_for_period,
    period_key,
)
from core.documents.numbering.models import (
    DEFAULT_POLICIES,
    DOC_INVOICE,
    DOC_ORDER,
    INVOICE_NUMBER_POLICY,
    ORDER_NUMBER_POLICY,
    NumberingPolicy,
)
from core.documents.numbering.provider import (
    InMemoryNumberingProvider,
    NumberingProvider,
)

__all__ = [
    "DOC_ORDER",
    "DOC_INVOICE",
    "ORDER_NUMBER_POLICY",
    "INVOICE_NUMBER_POLICY",
    "DEFAULT_POLICIES",
    "NumberingPolicy",
    "SequenceState",
    "period_key",
    "build_suffix_for_period",
    "NumberingProvider",
    "InMemoryNumberingProvider",
]
