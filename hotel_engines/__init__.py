"""
Module: hotel_engines
Responsibility:
    Re-exports the pure calculation engines used by the ledger service.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import only
    ``hotel_kernel.domain`` and ``hotel_kernel.logging_config``.

Invariants enforced:
    - Engines never read the clock; timestamps are passed in.
    - Decimal-only arithmetic for money.
    - Identical inputs produce identical outputs.
"""

from hotel_engines.charges import compute_charges, room_charge_id, stay_nights
from hotel_engines.invoicing import (
    InvoiceTotals,
    compute_invoice_totals,
    format_invoice_no,
)
from hotel_engines.reconciliation import (
    BookingBalance,
    compute_booking_balance,
    derive_invoice_status,
    paid_total,
)
from hotel_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "compute_charges",
    "room_charge_id",
    "stay_nights",
    "InvoiceTotals",
    "compute_invoice_totals",
    "format_invoice_no",
    "BookingBalance",
    "compute_booking_balance",
    "derive_invoice_status",
    "paid_total",
    "compute_input_fingerprint",
    "traced_engine",
]
