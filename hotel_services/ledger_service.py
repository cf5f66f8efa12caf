"""
hotel_services.ledger_service -- Booking financial ledger.

Responsibility:
    Issues invoices from a booking's charges, records payments, reconciles
    invoice status against recorded payments, and manages ad hoc charges
    and payment reversals.

Architecture position:
    Services.  Composes ``LedgerStore`` (records), ``hotel_engines``
    (pure calculations), ``KeyedLocks`` (single writer per booking) and an
    optional ``NotificationGateway`` (guest receipts).

Invariants enforced:
    - At most one Invoice per Booking.  ``issue_invoice`` is idempotent:
      a repeat call returns the stored invoice unchanged.
    - Every read-check-write on a booking's ledger runs under the
      ``booking:<id>`` lock, so concurrent first issues create one invoice.
    - Reconciliation without a reversal only moves PENDING -> PAID.
      PAID -> PENDING happens only when a payment is voided or refunded.
    - An issued invoice's lines and totals change only through an explicit
      ``rebill_invoice`` on a PENDING invoice.
    - Validation and lookups happen before any write.
    - Each write and its snapshot save run inside ``LedgerStore.savepoint``.
    - The snapshot is saved before any notification is dispatched.

Failure modes:
    - BookingNotFoundError, InvoiceNotFoundError, PaymentNotFoundError.
    - InvalidPaymentAmountError, InvalidChargeError.
    - InvalidStatusTransitionError when reversing a non-COMPLETED payment.
    - InvoiceAlreadySettledError when rebilling a PAID invoice.
    - SnapshotError when the save fails.  The booking's records are rolled
      back first, so a failed call changed nothing and may be retried.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

from hotel_engines.charges import compute_charges as compute_booking_charges
from hotel_engines.invoicing import compute_invoice_totals, format_invoice_no
from hotel_engines.reconciliation import (
    BookingBalance,
    compute_booking_balance,
    derive_invoice_status,
    paid_total,
)
from hotel_kernel.domain.clock import Clock, SystemClock
from hotel_kernel.domain.ledger import (
    INVOICE_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    Booking,
    Charge,
    ChargeCategory,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    can_transition,
)
from hotel_kernel.domain.values import ZERO, to_decimal
from hotel_kernel.exceptions import (
    BookingNotFoundError,
    ConflictError,
    InvalidChargeError,
    InvalidPaymentAmountError,
    InvalidStatusTransitionError,
    InvoiceAlreadySettledError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
)
from hotel_kernel.logging_config import LogContext, get_logger
from hotel_kernel.stores.ledger_store import LedgerStore
from hotel_kernel.stores.locks import KeyedLocks, booking_key
from hotel_services.templates import NotificationTemplate

if TYPE_CHECKING:
    from hotel_config.schema import HotelConfig
    from hotel_services.notification_gateway import NotificationGateway

logger = get_logger("services.ledger")

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class IssueResult:
    """Outcome of ``issue_invoice``; ``created`` is False for a repeat call."""

    invoice: Invoice
    created: bool


def _new_payment_reference() -> str:
    return "PMT-" + "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(7))


def _within(moment: datetime, start: datetime | None, end: datetime | None) -> bool:
    return (start is None or moment >= start) and (end is None or moment <= end)


class FinancialLedgerService:
    """Charges -> invoice -> payment, with idempotent issuance and reconciliation."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        tax_rate: Decimal = Decimal("0.10"),
        invoice_prefix: str = "INV",
        currency: str = "USD",
        clock: Clock | None = None,
        locks: KeyedLocks | None = None,
        notifications: NotificationGateway | None = None,
    ) -> None:
        self._store = store
        self._tax_rate = tax_rate
        self._invoice_prefix = invoice_prefix
        self._currency = currency
        self._clock = clock or SystemClock()
        self._locks = locks or KeyedLocks()
        self._notifications = notifications

    @classmethod
    def from_config(
        cls,
        store: LedgerStore,
        config: HotelConfig,
        *,
        clock: Clock | None = None,
        locks: KeyedLocks | None = None,
        notifications: NotificationGateway | None = None,
    ) -> FinancialLedgerService:
        return cls(
            store,
            tax_rate=config.tax_rate,
            invoice_prefix=config.invoice_prefix,
            currency=config.currency,
            clock=clock,
            locks=locks,
            notifications=notifications,
        )

    @property
    def tax_rate(self) -> Decimal:
        return self._tax_rate

    # ------------------------------------------------------------------
    # Charges
    # ------------------------------------------------------------------

    def compute_charges(self, booking_id: str) -> list[Charge]:
        """All billable charges for a booking: room stay plus unvoided ad hoc charges."""
        booking = self._require_booking(booking_id)
        return self._charges_for(booking)

    def _charges_for(self, booking: Booking) -> list[Charge]:
        room = self._store.get_room(booking.room_id)
        room_type = self._store.get_room_type(room.room_type_id if room else None)
        extra = [c for c in self._store.list_charges(booking.id) if not c.voided]
        return compute_booking_charges(
            booking=booking, room=room, room_type=room_type, extra_charges=extra,
        )

    def add_charge(
        self,
        booking_id: str,
        description: str,
        category: str | ChargeCategory,
        quantity: int = 1,
        amount: Decimal | int | str | float = ZERO,
    ) -> Charge:
        """Store an ad hoc charge; ``amount`` is the unit price.

        Before issuance the charge is folded into the invoice when it is
        issued.  After issuance it stays unbilled until ``rebill_invoice``.
        """
        if not description or not description.strip():
            raise InvalidChargeError(booking_id, "description is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidChargeError(booking_id, f"quantity must be a positive integer: {quantity!r}")
        try:
            unit_price = to_decimal(amount)
        except ValueError as exc:
            raise InvalidChargeError(booking_id, str(exc)) from exc
        if unit_price <= ZERO:
            raise InvalidChargeError(booking_id, f"amount must be positive: {amount}")

        with self._locks.hold(booking_key(booking_id)):
            self._require_booking(booking_id)
            charge = Charge(
                id=uuid4().hex,
                booking_id=booking_id,
                description=description.strip(),
                category=ChargeCategory.normalize(category),
                quantity=quantity,
                unit_price=unit_price,
                amount=unit_price * quantity,
                created_at=self._clock.now(),
            )
            invoiced = self._store.get_invoice_for_booking(booking_id) is not None
            with self._store.savepoint(booking_id):
                self._store.add_charge(charge)
                self._store.persist()

        logger.info(
            "charge_added",
            extra={
                "booking_id": booking_id,
                "charge_id": charge.id,
                "category": charge.category.value,
                "amount": str(charge.amount),
                "unbilled_after_issuance": invoiced,
            },
        )
        return charge

    def void_charge(self, booking_id: str, charge_id: str, reason: str | None = None) -> Charge:
        """Void an unbilled ad hoc charge.  Charges already on an invoice cannot be voided."""
        with self._locks.hold(booking_key(booking_id)):
            self._require_booking(booking_id)
            charge = next(
                (c for c in self._store.list_charges(booking_id) if c.id == charge_id), None
            )
            if charge is None:
                raise InvalidChargeError(booking_id, f"charge not found: {charge_id}")
            if charge.voided:
                raise ConflictError(f"Charge {charge_id} is already voided")
            invoice = self._store.get_invoice_for_booking(booking_id)
            if invoice is not None and any(line.id == charge_id for line in invoice.lines):
                raise ConflictError(f"Charge {charge_id} is billed on {invoice.invoice_no}")
            voided = replace(charge, voided=True, void_reason=reason)
            with self._store.savepoint(booking_id):
                self._store.replace_charge(voided)
                self._store.persist()

        logger.info(
            "charge_voided",
            extra={"booking_id": booking_id, "charge_id": charge_id, "reason": reason},
        )
        return voided

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def issue_invoice(self, booking_id: str) -> IssueResult:
        """Create the booking's invoice, or return the existing one unchanged."""
        with LogContext.bind(booking_id=booking_id):
            with self._locks.hold(booking_key(booking_id)):
                booking = self._require_booking(booking_id)
                existing = self._store.get_invoice_for_booking(booking_id)
                if existing is not None:
                    logger.info(
                        "invoice_already_issued",
                        extra={"invoice_id": existing.id, "invoice_no": existing.invoice_no},
                    )
                    return IssueResult(existing, False)

                charges = self._charges_for(booking)
                totals = compute_invoice_totals(charges=charges, tax_rate=self._tax_rate)
                now = self._clock.now()
                invoice = Invoice(
                    id=uuid4().hex,
                    booking_id=booking_id,
                    invoice_no=format_invoice_no(
                        self._invoice_prefix, now, self._store.next_invoice_sequence()
                    ),
                    lines=tuple(charges),
                    subtotal=totals.subtotal,
                    tax=totals.tax,
                    total=totals.total,
                    tax_rate=self._tax_rate,
                    issued_at=now,
                    status=InvoiceStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                )
                with self._store.savepoint(booking_id):
                    self._store.add_invoice(invoice)
                    # Payments recorded before issuance count immediately.
                    invoice = self._reconcile_locked(invoice)
                    self._store.persist()

            logger.info(
                "invoice_issued",
                extra={
                    "invoice_id": invoice.id,
                    "invoice_no": invoice.invoice_no,
                    "line_count": len(invoice.lines),
                    "subtotal": str(invoice.subtotal),
                    "tax": str(invoice.tax),
                    "total": str(invoice.total),
                },
            )
            if booking.guest_email:
                self._notify(
                    NotificationTemplate.INVOICE_ISSUED,
                    booking.guest_email,
                    {
                        "invoice_no": invoice.invoice_no,
                        "total": str(invoice.total),
                        "currency": self._currency,
                    },
                    reference=invoice.invoice_no,
                )
            return IssueResult(invoice, True)

    def get_invoice(self, booking_id: str) -> Invoice:
        """The booking's invoice, reconciled against payments before it is returned."""
        with self._locks.hold(booking_key(booking_id)):
            invoice = self._store.get_invoice_for_booking(booking_id)
            if invoice is None:
                if self._store.get_booking(booking_id) is None:
                    raise BookingNotFoundError(booking_id)
                raise InvoiceNotFoundError(booking_id=booking_id)
            return self._reconcile_and_persist(invoice)

    def get_invoice_by_id(self, invoice_id: str) -> Invoice:
        invoice = self._store.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id=invoice_id)
        return self.get_invoice(invoice.booking_id)

    def list_invoices(
        self,
        status: InvoiceStatus | str | None = None,
        *,
        issued_from: datetime | None = None,
        issued_to: datetime | None = None,
    ) -> list[Invoice]:
        """All invoices, each reconciled, newest first.

        Filters combine: ``status`` after reconciliation, and an inclusive
        ``issued_at`` range.
        """
        reconciled = [
            self.get_invoice(i.booking_id)
            for i in self._store.list_invoices()
            if _within(i.issued_at, issued_from, issued_to)
        ]
        if status is not None:
            status = InvoiceStatus(status)
            reconciled = [i for i in reconciled if i.status == status]
        return sorted(reconciled, key=lambda i: (i.issued_at, i.invoice_no), reverse=True)

    def reconcile_invoice_status(self, invoice_id: str) -> Invoice:
        """Recompute an invoice's status from its booking's payments."""
        invoice = self._store.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id=invoice_id)
        with self._locks.hold(booking_key(invoice.booking_id)):
            current = self._store.get_invoice(invoice_id)
            return self._reconcile_and_persist(current)

    def rebill_invoice(self, booking_id: str) -> Invoice:
        """Fold unbilled charges into a PENDING invoice and re-total it."""
        with self._locks.hold(booking_key(booking_id)):
            self._require_booking(booking_id)
            invoice = self._store.get_invoice_for_booking(booking_id)
            if invoice is None:
                raise InvoiceNotFoundError(booking_id=booking_id)
            invoice = self._reconcile_locked(invoice)
            if invoice.status == InvoiceStatus.PAID:
                raise InvoiceAlreadySettledError(invoice.id, booking_id)
            unbilled = self._unbilled_charges(booking_id, invoice)
            if not unbilled:
                return invoice

            lines = invoice.lines + tuple(unbilled)
            totals = compute_invoice_totals(charges=lines, tax_rate=invoice.tax_rate)
            rebilled = replace(
                invoice,
                lines=lines,
                subtotal=totals.subtotal,
                tax=totals.tax,
                total=totals.total,
                revision=invoice.revision + 1,
                updated_at=self._clock.now(),
            )
            with self._store.savepoint(booking_id):
                self._store.replace_invoice(rebilled)
                rebilled = self._reconcile_locked(rebilled)
                self._store.persist()

        logger.info(
            "invoice_rebilled",
            extra={
                "booking_id": booking_id,
                "invoice_id": rebilled.id,
                "revision": rebilled.revision,
                "added_lines": len(unbilled),
                "total": str(rebilled.total),
            },
        )
        return rebilled

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        booking_id: str,
        amount: Decimal | int | str | float,
        method: str | PaymentMethod,
        reference: str | None = None,
    ) -> Payment:
        """Append a COMPLETED payment and reconcile the booking's invoices."""
        try:
            value = to_decimal(amount)
        except ValueError as exc:
            raise InvalidPaymentAmountError(amount) from exc
        if value <= ZERO:
            raise InvalidPaymentAmountError(amount)

        with LogContext.bind(booking_id=booking_id):
            with self._locks.hold(booking_key(booking_id)):
                booking = self._require_booking(booking_id)
                payment = Payment(
                    id=uuid4().hex,
                    booking_id=booking_id,
                    amount=value,
                    method=PaymentMethod.normalize(method),
                    reference=(reference or "").strip() or _new_payment_reference(),
                    status=PaymentStatus.COMPLETED,
                    processed_at=self._clock.now(),
                )
                with self._store.savepoint(booking_id):
                    self._store.add_payment(payment)
                    for invoice in self._store.invoices_for_booking(booking_id):
                        self._reconcile_locked(invoice)
                    self._store.persist()

            logger.info(
                "payment_recorded",
                extra={
                    "payment_id": payment.id,
                    "amount": str(payment.amount),
                    "method": payment.method.value,
                    "reference": payment.reference,
                },
            )
            if booking.guest_email:
                self._notify(
                    NotificationTemplate.PAYMENT_RECEIPT,
                    booking.guest_email,
                    {
                        "amount": str(payment.amount),
                        "currency": self._currency,
                        "method": payment.method.value,
                        "payment_reference": payment.reference,
                    },
                    reference=payment.reference,
                )
            return payment

    def void_payment(self, payment_id: str, reason: str | None = None) -> Payment:
        return self._reverse_payment(payment_id, PaymentStatus.VOIDED, reason)

    def refund_payment(self, payment_id: str, reason: str | None = None) -> Payment:
        return self._reverse_payment(payment_id, PaymentStatus.REFUNDED, reason)

    def _reverse_payment(
        self,
        payment_id: str,
        target: PaymentStatus,
        reason: str | None,
    ) -> Payment:
        payment = self._store.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)

        with self._locks.hold(booking_key(payment.booking_id)):
            current = self._store.get_payment(payment_id)
            if not can_transition(PAYMENT_TRANSITIONS, current.status, target):
                raise InvalidStatusTransitionError(
                    "Payment", payment_id, current.status.value, target.value,
                )
            reversed_payment = replace(current, status=target, status_reason=reason)
            with self._store.savepoint(current.booking_id):
                self._store.replace_payment(reversed_payment)
                for invoice in self._store.invoices_for_booking(current.booking_id):
                    self._reconcile_locked(invoice, allow_downgrade=True)
                self._store.persist()

        logger.info(
            "payment_reversed",
            extra={
                "payment_id": payment_id,
                "booking_id": current.booking_id,
                "new_status": target.value,
                "reason": reason,
            },
        )
        return reversed_payment

    def list_payments(
        self,
        booking_id: str | None = None,
        *,
        method: str | PaymentMethod | None = None,
        status: PaymentStatus | str | None = None,
        processed_from: datetime | None = None,
        processed_to: datetime | None = None,
    ) -> list[Payment]:
        """Payments newest first, filtered by booking, method, status and an
        inclusive ``processed_at`` range."""
        if booking_id is None:
            payments = self._store.list_payments()
        else:
            self._require_booking(booking_id)
            payments = self._store.payments_for_booking(booking_id)
        if method is not None:
            method = PaymentMethod.normalize(method)
            payments = [p for p in payments if p.method == method]
        if status is not None:
            status = PaymentStatus(status)
            payments = [p for p in payments if p.status == status]
        payments = [
            p for p in payments if _within(p.processed_at, processed_from, processed_to)
        ]
        return sorted(payments, key=lambda p: p.processed_at, reverse=True)

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    def booking_balance(self, booking_id: str) -> BookingBalance:
        """Invoiced vs paid, plus charges not yet on an invoice."""
        with self._locks.hold(booking_key(booking_id)):
            booking = self._require_booking(booking_id)
            invoice = self._store.get_invoice_for_booking(booking_id)
            if invoice is None:
                unbilled = self._charges_for(booking)
                invoices: list[Invoice] = []
            else:
                unbilled = self._unbilled_charges(booking_id, invoice)
                invoices = [invoice]
            return compute_booking_balance(
                booking_id=booking_id,
                invoices=invoices,
                payments=self._store.payments_for_booking(booking_id),
                unbilled_charges=unbilled,
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def _unbilled_charges(self, booking_id: str, invoice: Invoice) -> list[Charge]:
        billed = {line.id for line in invoice.lines}
        return [
            c for c in self._store.list_charges(booking_id)
            if not c.voided and c.id not in billed
        ]

    def _reconcile_and_persist(self, invoice: Invoice) -> Invoice:
        with self._store.savepoint(invoice.booking_id):
            reconciled = self._reconcile_locked(invoice)
            if reconciled is not invoice:
                self._store.persist()
        return reconciled

    def _reconcile_locked(self, invoice: Invoice, allow_downgrade: bool = False) -> Invoice:
        """Caller holds the booking lock.  Returns the same object when nothing changed."""
        paid = paid_total(self._store.payments_for_booking(invoice.booking_id))
        new_status = derive_invoice_status(
            current=invoice.status,
            invoice_total=invoice.total,
            paid=paid,
            allow_downgrade=allow_downgrade,
        )
        if new_status == invoice.status:
            return invoice
        if not can_transition(INVOICE_TRANSITIONS, invoice.status, new_status):
            raise InvalidStatusTransitionError(
                "Invoice", invoice.id, invoice.status.value, new_status.value,
            )
        updated = replace(invoice, status=new_status, updated_at=self._clock.now())
        self._store.replace_invoice(updated)
        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": invoice.id,
                "booking_id": invoice.booking_id,
                "from_status": invoice.status.value,
                "to_status": new_status.value,
                "paid_total": str(paid),
                "invoice_total": str(invoice.total),
            },
        )
        return updated

    def _notify(self, template, recipient, data, *, reference) -> None:
        if self._notifications is None:
            return
        self._notifications.dispatch(template, recipient, data, reference=reference)
