"""
Invoice totals -- flat-rate tax over a list of charges.

``subtotal`` is the plain sum of charge amounts; ``tax`` is
``subtotal * tax_rate`` rounded half-up to cents; ``total`` is their sum.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from hotel_engines.tracer import traced_engine
from hotel_kernel.domain.ledger import Charge
from hotel_kernel.domain.values import round_money, sum_amounts


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@traced_engine("invoice_totals", "1.0", fingerprint_fields=("charges", "tax_rate"))
def compute_invoice_totals(
    *,
    charges: Sequence[Charge],
    tax_rate: Decimal,
) -> InvoiceTotals:
    if tax_rate < 0:
        raise ValueError(f"Tax rate must not be negative: {tax_rate}")
    subtotal = sum_amounts(c.amount for c in charges)
    tax = round_money(subtotal * tax_rate)
    return InvoiceTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def format_invoice_no(prefix: str, issued_at: datetime, sequence: int) -> str:
    """``<prefix>-<YYYYMMDD>-<6-digit sequence>``, e.g. ``INV-20240104-000001``."""
    return f"{prefix}-{issued_at:%Y%m%d}-{sequence:06d}"
