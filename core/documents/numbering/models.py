"""
Nexus Documents - Numbering Models
===================================
Numbering policies for the two sequences the order book hands out:
internal order numbers ("INT-00017/2026") and invoice numbers
("INV-00003/2026"). Both restart every calendar year.
"""

from __future__ import annotations

from dataclasses import dataclass

DOC_ORDER = "ORDER"
DOC_INVOICE = "INVOICE"


@dataclass(frozen=True)
class NumberingPolicy:
    """
    How one document type is numbered.

    suffix may carry {year}, filled from the issue instant. padding is
    the minimum digit count of the counter.
    """
    doc_type: str
    prefix: str = ""
    suffix: str = ""
    padding: int = 5
    start_at: int = 1

    def __post_init__(self):
        if not isinstance(self.doc_type, str) or not self.doc_type:
            raise ValueError("doc_type must be a non-empty string.")
        for name in ("prefix", "suffix"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string.")
        if not isinstance(self.padding, int) or self.padding < 1:
            raise ValueError("padding must be int >= 1.")
        if not isinstance(self.start_at, int) or self.start_at < 1:
            raise ValueError("start_at must be int >= 1.")

    def format_number(self, sequence: int, suffix: str | None = None) -> str:
        if not isinstance(sequence, int) or sequence < 1:
            raise ValueError("sequence must be int >= 1.")
        tail = self.suffix if suffix is None else suffix
        return f"{self.prefix}{sequence:0{self.padding}d}{tail}"


ORDER_NUMBER_POLICY = NumberingPolicy(doc_type=DOC_ORDER, prefix="INT-", suffix="/{year}")

INVOICE_NUMBER_POLICY = NumberingPolicy(doc_type=DOC_INVOICE, prefix="INV-", suffix="/{year}")

DEFAULT_POLICIES = (ORDER_NUMBER_POLICY, INVOICE_NUMBER_POLICY)
