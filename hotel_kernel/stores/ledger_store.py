"""
LedgerStore -- bookings, charges, invoices and payments.

Responsibility:
    Holds ledger records in memory, answers lookups by id and by booking,
    allocates invoice sequence numbers, and writes the whole ledger to a
    ``SnapshotStore`` under the ``ledger`` key when asked to persist.

Architecture position:
    Kernel > Stores.  Pure bookkeeping of records; no business rules beyond
    structural uniqueness.  Callers hold the per-booking lock from
    ``KeyedLocks`` across read-check-write sequences; the store's own RLock
    only keeps individual reads and the snapshot consistent.

Invariants enforced:
    - At most one Invoice per Booking (``add_invoice`` raises
      ``ConflictError`` on a second one).
    - Invoice sequence values are strictly increasing and never reused.
    - Payments are append-only; ``replace_payment`` may change status only.
    - ``savepoint(booking_id)`` undoes one booking's charge, invoice and
      payment changes when its block raises, leaving other bookings alone.
      Invoice sequence values consumed inside it stay consumed.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator

from hotel_kernel.domain.ledger import (
    Booking,
    Charge,
    Invoice,
    InvoiceStatus,
    Payment,
    Room,
    RoomType,
)
from hotel_kernel.exceptions import ConflictError
from hotel_kernel.logging_config import get_logger
from hotel_kernel.services.snapshot_service import SnapshotStore
from hotel_kernel.utils.serialization import (
    booking_from_dict,
    charge_from_dict,
    invoice_from_dict,
    payment_from_dict,
    room_from_dict,
    room_type_from_dict,
    to_primitive,
)

logger = get_logger("stores.ledger")

SNAPSHOT_KEY = "ledger"


class LedgerStore:
    def __init__(self, snapshot_store: SnapshotStore | None = None) -> None:
        self._snapshot_store = snapshot_store
        self._guard = threading.RLock()
        self._room_types: dict[str, RoomType] = {}
        self._rooms: dict[str, Room] = {}
        self._bookings: dict[str, Booking] = {}
        self._charges: dict[str, list[Charge]] = {}
        self._invoices: dict[str, Invoice] = {}
        self._invoice_by_booking: dict[str, str] = {}
        self._payments: dict[str, Payment] = {}
        self._payments_by_booking: dict[str, list[str]] = {}
        self._invoice_sequence = 0

    # -- reference data ---------------------------------------------------

    def put_room_type(self, room_type: RoomType) -> None:
        with self._guard:
            self._room_types[room_type.id] = room_type

    def put_room(self, room: Room) -> None:
        with self._guard:
            self._rooms[room.id] = room

    def put_booking(self, booking: Booking) -> None:
        with self._guard:
            self._bookings[booking.id] = booking

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._guard:
            return self._bookings.get(booking_id)

    def get_room(self, room_id: str | None) -> Room | None:
        if room_id is None:
            return None
        with self._guard:
            return self._rooms.get(room_id)

    def get_room_type(self, room_type_id: str | None) -> RoomType | None:
        if room_type_id is None:
            return None
        with self._guard:
            return self._room_types.get(room_type_id)

    # -- charges ----------------------------------------------------------

    def add_charge(self, charge: Charge) -> None:
        with self._guard:
            self._charges.setdefault(charge.booking_id, []).append(charge)

    def replace_charge(self, charge: Charge) -> None:
        with self._guard:
            charges = self._charges.get(charge.booking_id, [])
            for index, existing in enumerate(charges):
                if existing.id == charge.id:
                    charges[index] = charge
                    return
            raise KeyError(charge.id)

    def list_charges(self, booking_id: str) -> list[Charge]:
        """Stored (ad hoc) charges for a booking, oldest first."""
        with self._guard:
            return list(self._charges.get(booking_id, ()))

    # -- invoices ---------------------------------------------------------

    def next_invoice_sequence(self) -> int:
        with self._guard:
            self._invoice_sequence += 1
            return self._invoice_sequence

    def add_invoice(self, invoice: Invoice) -> None:
        with self._guard:
            existing = self._invoice_by_booking.get(invoice.booking_id)
            if existing is not None:
                raise ConflictError(
                    f"Booking {invoice.booking_id} already has invoice {existing}"
                )
            self._invoices[invoice.id] = invoice
            self._invoice_by_booking[invoice.booking_id] = invoice.id

    def replace_invoice(self, invoice: Invoice) -> None:
        with self._guard:
            if invoice.id not in self._invoices:
                raise KeyError(invoice.id)
            self._invoices[invoice.id] = invoice

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        with self._guard:
            return self._invoices.get(invoice_id)

    def get_invoice_for_booking(self, booking_id: str) -> Invoice | None:
        with self._guard:
            invoice_id = self._invoice_by_booking.get(booking_id)
            return self._invoices.get(invoice_id) if invoice_id else None

    def invoices_for_booking(self, booking_id: str) -> list[Invoice]:
        invoice = self.get_invoice_for_booking(booking_id)
        return [invoice] if invoice is not None else []

    def list_invoices(self, status: InvoiceStatus | None = None) -> list[Invoice]:
        with self._guard:
            invoices = list(self._invoices.values())
        if status is not None:
            invoices = [i for i in invoices if i.status == status]
        return sorted(invoices, key=lambda i: (i.issued_at, i.invoice_no), reverse=True)

    # -- payments ---------------------------------------------------------

    def add_payment(self, payment: Payment) -> None:
        with self._guard:
            if payment.id in self._payments:
                raise ConflictError(f"Payment already exists: {payment.id}")
            self._payments[payment.id] = payment
            self._payments_by_booking.setdefault(payment.booking_id, []).append(payment.id)

    def replace_payment(self, payment: Payment) -> None:
        with self._guard:
            current = self._payments.get(payment.id)
            if current is None:
                raise KeyError(payment.id)
            if (current.booking_id, current.amount, current.method, current.reference) != (
                payment.booking_id, payment.amount, payment.method, payment.reference
            ):
                raise ConflictError(f"Payment {payment.id} is append-only")
            self._payments[payment.id] = payment

    def get_payment(self, payment_id: str) -> Payment | None:
        with self._guard:
            return self._payments.get(payment_id)

    def payments_for_booking(self, booking_id: str) -> list[Payment]:
        """Payments for a booking in recording order."""
        with self._guard:
            return [self._payments[pid] for pid in self._payments_by_booking.get(booking_id, ())]

    def list_payments(self) -> list[Payment]:
        with self._guard:
            payments = list(self._payments.values())
        return sorted(payments, key=lambda p: p.processed_at, reverse=True)

    # -- savepoint ---------------------------------------------------------

    @contextmanager
    def savepoint(self, booking_id: str) -> Iterator[None]:
        """Restore the booking's records if the block raises.

        The caller holds the booking lock, so nothing else writes this
        booking's records while the block runs.
        """
        with self._guard:
            saved = self._booking_records(booking_id)
        try:
            yield
        except Exception:
            with self._guard:
                self._restore_booking_records(booking_id, saved)
            logger.warning("ledger_savepoint_rolled_back", extra={"booking_id": booking_id})
            raise

    def _booking_records(self, booking_id: str) -> dict[str, Any]:
        invoice_id = self._invoice_by_booking.get(booking_id)
        payment_ids = list(self._payments_by_booking.get(booking_id, ()))
        return {
            "charges": list(self._charges.get(booking_id, ())),
            "invoice": self._invoices.get(invoice_id) if invoice_id else None,
            "payment_ids": payment_ids,
            "payments": {pid: self._payments[pid] for pid in payment_ids},
        }

    def _restore_booking_records(self, booking_id: str, saved: dict[str, Any]) -> None:
        if saved["charges"]:
            self._charges[booking_id] = saved["charges"]
        else:
            self._charges.pop(booking_id, None)

        current_invoice_id = self._invoice_by_booking.pop(booking_id, None)
        if current_invoice_id is not None:
            del self._invoices[current_invoice_id]
        invoice = saved["invoice"]
        if invoice is not None:
            self._invoices[invoice.id] = invoice
            self._invoice_by_booking[booking_id] = invoice.id

        for pid in self._payments_by_booking.pop(booking_id, ()):
            del self._payments[pid]
        if saved["payment_ids"]:
            self._payments.update(saved["payments"])
            self._payments_by_booking[booking_id] = saved["payment_ids"]

    # -- snapshot ---------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        with self._guard:
            return {
                "room_types": to_primitive(list(self._room_types.values())),
                "rooms": to_primitive(list(self._rooms.values())),
                "bookings": to_primitive(list(self._bookings.values())),
                "charges": to_primitive(
                    [c for charges in self._charges.values() for c in charges]
                ),
                "invoices": to_primitive(list(self._invoices.values())),
                "payments": to_primitive(
                    [self._payments[pid]
                     for pids in self._payments_by_booking.values() for pid in pids]
                ),
                "invoice_sequence": self._invoice_sequence,
            }

    def restore(self, state: dict[str, Any]) -> None:
        """Replace all in-memory records with a previously saved snapshot."""
        with self._guard:
            self._room_types = {
                r.id: r for r in map(room_type_from_dict, state.get("room_types", []))
            }
            self._rooms = {r.id: r for r in map(room_from_dict, state.get("rooms", []))}
            self._bookings = {
                b.id: b for b in map(booking_from_dict, state.get("bookings", []))
            }
            self._charges = {}
            for charge in map(charge_from_dict, state.get("charges", [])):
                self._charges.setdefault(charge.booking_id, []).append(charge)
            self._invoices = {}
            self._invoice_by_booking = {}
            for invoice in map(invoice_from_dict, state.get("invoices", [])):
                self._invoices[invoice.id] = invoice
                self._invoice_by_booking[invoice.booking_id] = invoice.id
            self._payments = {}
            self._payments_by_booking = {}
            for payment in map(payment_from_dict, state.get("payments", [])):
                self._payments[payment.id] = payment
                self._payments_by_booking.setdefault(payment.booking_id, []).append(payment.id)
            self._invoice_sequence = int(state.get("invoice_sequence", 0))
        logger.info(
            "ledger_restored",
            extra={
                "invoice_count": len(self._invoices),
                "payment_count": len(self._payments),
            },
        )

    def load(self) -> bool:
        """Restore from the snapshot store.  Returns False when nothing was saved."""
        if self._snapshot_store is None:
            return False
        state = self._snapshot_store.load(SNAPSHOT_KEY)
        if state is None:
            return False
        self.restore(state)
        return True

    def persist(self) -> None:
        """Save the full ledger.  Raises ``SnapshotError`` on failure."""
        if self._snapshot_store is None:
            return
        self._snapshot_store.save(SNAPSHOT_KEY, self.to_snapshot())
