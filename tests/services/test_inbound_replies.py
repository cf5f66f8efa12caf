"""Request reference extraction and attachment collection for inbound email."""

from email.message import EmailMessage

import pytest

from hotel_services.inbound_replies import attachments_from_message, extract_request_reference


class TestExtractRequestReference:
    @pytest.mark.parametrize(
        "subject,expected",
        [
            ("Re: We received your access request [AR-3f2a9c]", "3f2a9c"),
            ("RE: FW: [ar-ABC123] more info", "abc123"),
            ("AR-deadbeef", "deadbeef"),
        ],
    )
    def test_subject_reference(self, subject, expected):
        assert extract_request_reference(subject) == expected

    def test_first_text_wins(self):
        assert extract_request_reference("[AR-aaa111]", "quoted AR-bbb222") == "aaa111"

    def test_falls_through_to_body(self):
        assert extract_request_reference("Re: info", "> Reference: AR-bbb222") == "bbb222"

    @pytest.mark.parametrize("texts", [(), (None,), ("",), ("no reference here", None)])
    def test_no_reference(self, texts):
        assert extract_request_reference(*texts) is None


class TestAttachmentsFromMessage:
    def test_plain_message_has_none(self):
        message = EmailMessage()
        message.set_content("no files")
        assert attachments_from_message(message) == ()

    def test_collects_parts_in_order(self):
        message = EmailMessage()
        message.set_content("two files")
        message.add_attachment(b"%PDF-1.4", maintype="application", subtype="pdf", filename="id.pdf")
        message.add_attachment(b"abc", maintype="application", subtype="octet-stream")

        first, second = attachments_from_message(message)

        assert (first.filename, first.content_type, first.size) == ("id.pdf", "application/pdf", 8)
        assert first.content == b"%PDF-1.4"
        assert (second.filename, second.content_type) == ("attachment", "application/octet-stream")
        assert second.has_content
