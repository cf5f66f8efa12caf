"""
Reconciliation -- invoice status from recorded payments.

Only payments whose status counts toward the balance (COMPLETED) are
summed.  A PENDING invoice becomes PAID once the paid total reaches the
invoice total.  A PAID invoice goes back to PENDING only when the caller
allows a downgrade, which happens after a payment is voided or refunded.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from hotel_engines.tracer import traced_engine
from hotel_kernel.domain.ledger import Charge, Invoice, InvoiceStatus, Payment
from hotel_kernel.domain.values import ZERO, sum_amounts


def paid_total(payments: Sequence[Payment]) -> Decimal:
    return sum_amounts(p.amount for p in payments if p.counts_toward_balance)


@traced_engine("reconciliation", "1.0", fingerprint_fields=("current", "invoice_total", "paid"))
def derive_invoice_status(
    *,
    current: InvoiceStatus,
    invoice_total: Decimal,
    paid: Decimal,
    allow_downgrade: bool = False,
) -> InvoiceStatus:
    if paid >= invoice_total:
        return InvoiceStatus.PAID
    if current == InvoiceStatus.PAID and allow_downgrade:
        return InvoiceStatus.PENDING
    return current


@dataclass(frozen=True)
class BookingBalance:
    booking_id: str
    invoiced_total: Decimal
    paid_total: Decimal
    outstanding: Decimal
    unbilled_subtotal: Decimal
    unbilled_charge_count: int

    @property
    def in_credit(self) -> bool:
        return self.outstanding < ZERO


def compute_booking_balance(
    *,
    booking_id: str,
    invoices: Sequence[Invoice],
    payments: Sequence[Payment],
    unbilled_charges: Sequence[Charge],
) -> BookingBalance:
    """Derived view; ``outstanding`` is negative when the guest has overpaid."""
    invoiced = sum_amounts(i.total for i in invoices)
    paid = paid_total(payments)
    return BookingBalance(
        booking_id=booking_id,
        invoiced_total=invoiced,
        paid_total=paid,
        outstanding=invoiced - paid,
        unbilled_subtotal=sum_amounts(c.amount for c in unbilled_charges),
        unbilled_charge_count=len(unbilled_charges),
    )
