"""Tests for invoice totals and reconciliation engines."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from hotel_engines.invoicing import compute_invoice_totals, format_invoice_no
from hotel_engines.reconciliation import (
    compute_booking_balance,
    derive_invoice_status,
    paid_total,
)
from hotel_kernel.domain.ledger import (
    Charge,
    ChargeCategory,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
)

NOW = datetime(2024, 1, 4, 12, 0, tzinfo=timezone.utc)


def _charge(amount, charge_id="c1"):
    return Charge(
        id=charge_id,
        booking_id="bk-1",
        description="line",
        category=ChargeCategory.OTHER,
        quantity=1,
        unit_price=Decimal(amount),
        amount=Decimal(amount),
    )


def _payment(amount, status=PaymentStatus.COMPLETED, payment_id="p1"):
    return Payment(
        id=payment_id,
        booking_id="bk-1",
        amount=Decimal(amount),
        method=PaymentMethod.CASH,
        reference="PMT-TEST",
        status=status,
        processed_at=NOW,
    )


class TestInvoiceTotals:
    def test_ten_percent_on_150(self):
        totals = compute_invoice_totals(charges=[_charge("150")], tax_rate=Decimal("0.10"))
        assert totals.subtotal == Decimal("150")
        assert totals.tax == Decimal("15.00")
        assert totals.total == Decimal("165.00")

    def test_tax_rounds_half_up(self):
        totals = compute_invoice_totals(charges=[_charge("0.05")], tax_rate=Decimal("0.10"))
        assert totals.tax == Decimal("0.01")

    def test_empty_invoice(self):
        totals = compute_invoice_totals(charges=[], tax_rate=Decimal("0.10"))
        assert totals.total == Decimal("0")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            compute_invoice_totals(charges=[_charge("10")], tax_rate=Decimal("-0.01"))

    @given(
        amounts=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2),
            max_size=20,
        ),
        rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("0.99"), places=2),
    )
    def test_total_is_subtotal_plus_tax(self, amounts, rate):
        charges = [_charge(str(a), f"c{i}") for i, a in enumerate(amounts)]
        totals = compute_invoice_totals(charges=charges, tax_rate=rate)
        assert totals.total == totals.subtotal + totals.tax
        assert totals.tax == totals.tax.quantize(Decimal("0.01"))
        assert abs(totals.tax - totals.subtotal * rate) <= Decimal("0.005")


class TestInvoiceNumber:
    def test_format(self):
        assert format_invoice_no("INV", NOW, 1) == "INV-20240104-000001"

    def test_sequence_wider_than_six_digits(self):
        assert format_invoice_no("INV", NOW, 1234567) == "INV-20240104-1234567"


class TestDeriveInvoiceStatus:
    def test_partial_payment_stays_pending(self):
        status = derive_invoice_status(
            current=InvoiceStatus.PENDING, invoice_total=Decimal("100"), paid=Decimal("40"),
        )
        assert status == InvoiceStatus.PENDING

    def test_exact_payment_is_paid(self):
        status = derive_invoice_status(
            current=InvoiceStatus.PENDING, invoice_total=Decimal("100"), paid=Decimal("100"),
        )
        assert status == InvoiceStatus.PAID

    def test_overpayment_is_paid(self):
        status = derive_invoice_status(
            current=InvoiceStatus.PENDING, invoice_total=Decimal("100"), paid=Decimal("105"),
        )
        assert status == InvoiceStatus.PAID

    def test_paid_never_downgrades_by_default(self):
        status = derive_invoice_status(
            current=InvoiceStatus.PAID, invoice_total=Decimal("100"), paid=Decimal("0"),
        )
        assert status == InvoiceStatus.PAID

    def test_downgrade_when_allowed(self):
        status = derive_invoice_status(
            current=InvoiceStatus.PAID,
            invoice_total=Decimal("100"),
            paid=Decimal("60"),
            allow_downgrade=True,
        )
        assert status == InvoiceStatus.PENDING

    def test_zero_total_is_paid(self):
        status = derive_invoice_status(
            current=InvoiceStatus.PENDING, invoice_total=Decimal("0"), paid=Decimal("0"),
        )
        assert status == InvoiceStatus.PAID


class TestPaidTotal:
    def test_only_completed_payments_count(self):
        payments = [
            _payment("40", payment_id="p1"),
            _payment("65", PaymentStatus.VOIDED, payment_id="p2"),
            _payment("10", PaymentStatus.REFUNDED, payment_id="p3"),
            _payment("5", PaymentStatus.FAILED, payment_id="p4"),
        ]
        assert paid_total(payments) == Decimal("40")


class TestBookingBalance:
    def test_outstanding_and_unbilled(self):
        invoice = Invoice(
            id="inv-1",
            booking_id="bk-1",
            invoice_no="INV-20240104-000001",
            lines=(_charge("150"),),
            subtotal=Decimal("150"),
            tax=Decimal("15.00"),
            total=Decimal("165.00"),
            tax_rate=Decimal("0.10"),
            issued_at=NOW,
            status=InvoiceStatus.PENDING,
            created_at=NOW,
            updated_at=NOW,
        )
        balance = compute_booking_balance(
            booking_id="bk-1",
            invoices=[invoice],
            payments=[_payment("100")],
            unbilled_charges=[_charge("12", "c-minibar")],
        )
        assert balance.invoiced_total == Decimal("165.00")
        assert balance.paid_total == Decimal("100")
        assert balance.outstanding == Decimal("65.00")
        assert balance.unbilled_subtotal == Decimal("12")
        assert balance.unbilled_charge_count == 1
        assert not balance.in_credit

    def test_overpaid_is_in_credit(self):
        balance = compute_booking_balance(
            booking_id="bk-1", invoices=[], payments=[_payment("10")], unbilled_charges=[],
        )
        assert balance.outstanding == Decimal("-10")
        assert balance.in_credit
