"""Template rendering: subjects, escaping, plain-text and SMS forms."""

import pytest

from hotel_services.templates import NotificationTemplate, render_notification, render_sms

BASE = {
    "brand_name": "LaFlo",
    "full_name": "Jane Doe",
    "first_name": "Jane",
    "email": "jane@x.com",
    "reference": "AR-abc123",
    "login_url": "http://localhost:4212/login",
}


class TestSubjects:
    @pytest.mark.parametrize(
        "template,subject",
        [
            (NotificationTemplate.ACCESS_REQUEST_RECEIVED,
             "We received your access request [AR-abc123]"),
            (NotificationTemplate.ACCESS_REQUEST_ADMIN_ALERT, "New access request"),
            (NotificationTemplate.ACCESS_NEEDS_INFO,
             "Additional information needed for your access request [AR-abc123]"),
            (NotificationTemplate.ACCESS_APPROVED, "Your LaFlo access is approved [AR-abc123]"),
            (NotificationTemplate.ACCESS_REJECTED,
             "Your LaFlo access request was rejected [AR-abc123]"),
        ],
    )
    def test_access_subjects(self, template, subject):
        assert render_notification(template, BASE).subject == subject

    def test_invoice_and_receipt_subjects(self):
        invoice = render_notification(
            NotificationTemplate.INVOICE_ISSUED,
            {**BASE, "invoice_no": "INV-20240101-000001", "total": "165.00", "currency": "USD"},
        )
        receipt = render_notification(
            NotificationTemplate.PAYMENT_RECEIPT,
            {**BASE, "payment_reference": "PMT-ABC1234", "amount": "40", "currency": "USD"},
        )
        assert invoice.subject == "Your invoice INV-20240101-000001"
        assert "Total: 165.00 USD" in invoice.text
        assert receipt.subject == "Payment received PMT-ABC1234"
        assert "Amount: 40 USD" in receipt.text


class TestBodies:
    def test_user_values_are_escaped_in_html(self):
        rendered = render_notification(
            NotificationTemplate.ACCESS_REQUEST_ADMIN_ALERT,
            {**BASE, "company": "<script>alert(1)</script>", "message": "Tom & Jerry"},
        )
        assert "<script>" not in rendered.html
        assert "&lt;script&gt;" in rendered.html
        assert "Tom &amp; Jerry" in rendered.html
        assert "Tom & Jerry" in rendered.text

    def test_missing_values_render_as_dash(self):
        rendered = render_notification(NotificationTemplate.ACCESS_REQUEST_RECEIVED, BASE)
        assert "Company: -" in rendered.text
        assert "Role: -" in rendered.text

    def test_approval_carries_credential_and_login(self):
        rendered = render_notification(
            NotificationTemplate.ACCESS_APPROVED,
            {**BASE, "temporary_password": "TempFixed01A1!", "role": "RECEPTIONIST"},
        )
        assert "Hello Jane," in rendered.text
        assert "Temporary password: TempFixed01A1!" in rendered.text
        assert 'href="http://localhost:4212/login"' in rendered.html

    def test_notes_included_when_present(self):
        with_notes = render_notification(
            NotificationTemplate.ACCESS_NEEDS_INFO, {**BASE, "notes": "staff ID please"}
        )
        without = render_notification(NotificationTemplate.ACCESS_NEEDS_INFO, BASE)
        assert "Notes: staff ID please" in with_notes.text
        assert "Notes:" not in without.text

    def test_accepts_template_value(self):
        rendered = render_notification("ACCESS_REJECTED", BASE)
        assert rendered.subject.endswith("[AR-abc123]")

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            render_notification("NOPE", BASE)


class TestSms:
    def test_subject_only(self):
        assert render_sms(NotificationTemplate.ACCESS_APPROVED, BASE) == (
            "Your LaFlo access is approved [AR-abc123]"
        )

    def test_with_body(self):
        text = render_sms(NotificationTemplate.ACCESS_APPROVED, {**BASE, "sms": "Check email"})
        assert text == "Your LaFlo access is approved [AR-abc123]: Check email"
