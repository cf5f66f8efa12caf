"""
Ledger domain types (``hotel_kernel.domain.ledger``).

Responsibility
--------------
Pure value objects for the booking financial ledger: reference data
(rooms, room types, bookings), charges, invoices and payments, plus the
closed status vocabularies and their transition tables.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``stores/``, ``db/`` or outer layers.

Invariants enforced
-------------------
* ``INVOICE_TRANSITIONS`` and ``PAYMENT_TRANSITIONS`` are the only legal
  status changes; ``can_transition`` is the single validation function.
* Every record is a frozen dataclass.  Stores replace records with
  ``dataclasses.replace``; nothing mutates a record in place.
* Only payments in ``COUNTED_PAYMENT_STATUSES`` contribute to the paid
  total of a booking.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


# =========================================================================
# Reference data (owned by the reservation subsystem; read-only here)
# =========================================================================


class BookingStatus(str, Enum):
    """Reservation lifecycle states."""

    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


@dataclass(frozen=True)
class RoomType:
    id: str
    name: str
    base_rate: Decimal


@dataclass(frozen=True)
class Room:
    id: str
    number: str
    room_type_id: str


@dataclass(frozen=True)
class Booking:
    """A guest's stay.  The ledger only reads bookings."""

    id: str
    guest_id: str
    room_id: str | None
    check_in_date: date
    check_out_date: date
    status: BookingStatus = BookingStatus.CONFIRMED
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    guest_email: str | None = None


# =========================================================================
# Charges
# =========================================================================


class ChargeCategory(str, Enum):
    """Billable line categories."""

    ROOM = "ROOM"
    EARLY_CHECKIN = "EARLY_CHECKIN"
    LATE_CHECKOUT = "LATE_CHECKOUT"
    EXTRA_BED = "EXTRA_BED"
    EXTRA_PERSON = "EXTRA_PERSON"
    MINIBAR = "MINIBAR"
    RESTAURANT = "RESTAURANT"
    ROOM_SERVICE = "ROOM_SERVICE"
    SPA = "SPA"
    LAUNDRY = "LAUNDRY"
    PARKING = "PARKING"
    PHONE = "PHONE"
    DAMAGE = "DAMAGE"
    OTHER = "OTHER"

    @classmethod
    def normalize(cls, value: str | ChargeCategory | None) -> ChargeCategory:
        """Map free text to a category; unknown values become OTHER."""
        if isinstance(value, ChargeCategory):
            return value
        key = _enum_key(value)
        return cls.__members__.get(key, cls.OTHER)


@dataclass(frozen=True)
class Charge:
    """
    A billable line.

    Derived room-stay charges have a deterministic id and no
    ``created_at``; ad hoc charges carry the time they were added.  A
    voided charge stays on record but is never billed.
    """

    id: str
    booking_id: str
    description: str
    category: ChargeCategory
    quantity: int
    unit_price: Decimal
    amount: Decimal
    created_at: datetime | None = None
    voided: bool = False
    void_reason: str | None = None


# =========================================================================
# Invoice
# =========================================================================


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


# PAID -> PENDING is reached only through a payment reversal.
INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset({InvoiceStatus.PENDING}),
}


@dataclass(frozen=True)
class Invoice:
    """
    Financial snapshot of a booking's charges at issuance.

    ``lines`` is the tuple of charges the totals were computed from.
    ``revision`` starts at 1 and increases only when an explicit rebill
    folds unbilled charges into a PENDING invoice.
    """

    id: str
    booking_id: str
    invoice_no: str
    lines: tuple[Charge, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal
    issued_at: datetime
    status: InvoiceStatus
    created_at: datetime
    updated_at: datetime
    revision: int = 1

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


# =========================================================================
# Payment
# =========================================================================


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    STRIPE = "STRIPE"
    CHECK = "CHECK"
    OTHER = "OTHER"

    @classmethod
    def normalize(cls, value: str | PaymentMethod | None) -> PaymentMethod:
        """Upper-case, spaces to underscores; unknown values become OTHER."""
        if isinstance(value, PaymentMethod):
            return value
        key = _enum_key(value)
        return cls.__members__.get(key, cls.OTHER)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    VOIDED = "VOIDED"
    REFUNDED = "REFUNDED"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
    }),
    PaymentStatus.COMPLETED: frozenset({
        PaymentStatus.VOIDED,
        PaymentStatus.REFUNDED,
    }),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.VOIDED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

COUNTED_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset({
    PaymentStatus.COMPLETED,
})


@dataclass(frozen=True)
class Payment:
    """Money received against a booking.  Only ``status`` ever changes."""

    id: str
    booking_id: str
    amount: Decimal
    method: PaymentMethod
    reference: str
    status: PaymentStatus
    processed_at: datetime
    status_reason: str | None = None

    @property
    def counts_toward_balance(self) -> bool:
        return self.status in COUNTED_PAYMENT_STATUSES


# =========================================================================
# Helpers
# =========================================================================


def can_transition(table: dict, current, target) -> bool:
    """True when ``target`` is an outgoing edge of ``current`` in ``table``."""
    return target in table.get(current, frozenset())


def _enum_key(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", "_", str(value).strip().upper())
