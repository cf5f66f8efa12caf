"""
End-to-end scenarios through a fully wired BackOffice.

Access request lifecycle from submission to a provisioned user, and a
booking from charges through invoice and payment to a settled balance.
Notifications run on the real worker pool; assertions on delivered mail
wait for it to drain.
"""

from datetime import date
from decimal import Decimal

import pytest

from hotel_kernel.domain.access import AccessRequestStatus, Role
from hotel_kernel.domain.ledger import Booking, ChargeCategory, InvoiceStatus, Room, RoomType
from hotel_kernel.exceptions import AccessRequestNotFoundError
from hotel_services.back_office import BackOffice


@pytest.fixture
def office(hotel_config, deterministic_clock, recording_email_sender, credential_hasher):
    office = BackOffice(
        hotel_config,
        clock=deterministic_clock,
        email_sender=recording_email_sender,
        hasher=credential_hasher,
    )
    office.ledger_store.put_room_type(
        RoomType(id="rt-dlx", name="Deluxe", base_rate=Decimal("50"))
    )
    office.ledger_store.put_room(Room(id="room-201", number="201", room_type_id="rt-dlx"))
    office.ledger_store.put_booking(
        Booking(
            id="bk-e2e",
            guest_id="guest-9",
            room_id="room-201",
            check_in_date=date(2024, 1, 1),
            check_out_date=date(2024, 1, 4),
            guest_email="guest9@example.com",
        )
    )
    yield office
    office.close(timeout=5)


class TestAccessLifecycle:
    def test_submit_to_provisioned_user(self, office, recording_email_sender):
        access = office.access

        request = access.submit("Jane Doe", "jane@x.com", "LaFlo Hotel", "receptionist")
        assert access.request_info(request.id, "need staff ID").status == (
            AccessRequestStatus.NEEDS_INFO
        )
        access.record_reply(request.id, "jane@x.com", "Re: info", "here is my ID")
        assert access.get_request(request.id).status == AccessRequestStatus.INFO_RECEIVED
        assert len(access.list_replies(request.id)) == 1

        user = access.approve(request.id, role="RECEPTIONIST")

        assert user.role == Role.RECEPTIONIST
        assert user.must_change_password
        assert request.id not in {r.id for r in access.list_requests()}
        with pytest.raises(AccessRequestNotFoundError):
            access.reject(request.id, "too late")
        assert access.list_users() == [user]

        assert office.notifications.drain(timeout=5)
        subjects = [m["subject"] for m in recording_email_sender.to("jane@x.com")]
        assert len(subjects) == 3
        assert all(f"[AR-{request.id}]" in s for s in subjects)

    def test_inbound_reply_by_reference(self, office):
        access = office.access
        request = access.submit("Sam Lee", "sam@x.com")
        access.request_info(request.id, "which property?")

        reply = access.ingest_inbound_email(
            "sam@x.com",
            f"Re: Additional information needed [AR-{request.id}]",
            "Harbour House",
            message_id="<reply-1@mail.example>",
        )

        assert reply.access_request_id == request.id
        assert access.get_request(request.id).status == AccessRequestStatus.INFO_RECEIVED


class TestBookingToSettlement:
    def test_charges_invoice_payments(self, office, recording_email_sender):
        ledger = office.ledger

        charges = ledger.compute_charges("bk-e2e")
        assert [(c.quantity, c.amount) for c in charges] == [(3, Decimal("150"))]
        assert ledger.compute_charges("bk-e2e") == charges

        ledger.add_charge("bk-e2e", "Minibar", ChargeCategory.MINIBAR, 2, Decimal("5"))
        invoice = ledger.issue_invoice("bk-e2e").invoice
        assert invoice.subtotal == Decimal("160")
        assert invoice.tax == Decimal("16.00")
        assert invoice.total == Decimal("176.00")
        assert ledger.issue_invoice("bk-e2e").invoice == invoice

        ledger.record_payment("bk-e2e", Decimal("100"), "credit card")
        assert ledger.get_invoice("bk-e2e").status == InvoiceStatus.PENDING
        ledger.record_payment("bk-e2e", "76", "cash")
        assert ledger.get_invoice("bk-e2e").status == InvoiceStatus.PAID

        balance = ledger.booking_balance("bk-e2e")
        assert balance.outstanding == Decimal("0.00")
        assert balance.unbilled_charge_count == 0

        assert office.notifications.drain(timeout=5)
        subjects = [m["subject"] for m in recording_email_sender.to("guest9@example.com")]
        assert f"Your invoice {invoice.invoice_no}" in subjects
        assert len([s for s in subjects if s.startswith("Payment received PMT-")]) == 2

    def test_late_charge_is_rebilled(self, office):
        ledger = office.ledger
        ledger.issue_invoice("bk-e2e")
        ledger.add_charge("bk-e2e", "Late checkout", ChargeCategory.LATE_CHECKOUT, 1, "20")

        assert ledger.get_invoice("bk-e2e").total == Decimal("165.00")
        assert ledger.booking_balance("bk-e2e").unbilled_subtotal == Decimal("20")

        rebilled = ledger.rebill_invoice("bk-e2e")
        assert rebilled.total == Decimal("187.00")
        assert rebilled.revision == 2
        assert ledger.booking_balance("bk-e2e").unbilled_charge_count == 0
