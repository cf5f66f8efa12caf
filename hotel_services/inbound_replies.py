"""
Inbound reply matching.

Replies to access-request emails quote ``AR-<id>`` in the subject (every
outbound subject carries it).  ``extract_request_reference`` finds that
id in a subject or body; the provisioning service falls back to the
sender's open NEEDS_INFO request when no reference is present.
``attachments_from_message`` collects the files of a parsed reply so they
can be stored with it.
"""

from __future__ import annotations

import re
from email.message import EmailMessage

from hotel_kernel.domain.access import ReplyAttachment

REQUEST_REFERENCE_PATTERN = re.compile(r"AR-([a-z0-9]+)", re.IGNORECASE)


def extract_request_reference(*texts: str | None) -> str | None:
    """Request id from the first text containing an ``AR-`` reference, lower-cased."""
    for text in texts:
        if not text:
            continue
        match = REQUEST_REFERENCE_PATTERN.search(text)
        if match:
            return match.group(1).lower()
    return None


def attachments_from_message(message: EmailMessage) -> tuple[ReplyAttachment, ...]:
    """Attachment parts of a message parsed with ``email.policy.default``."""
    return tuple(
        ReplyAttachment.from_content(
            part.get_payload(decode=True),
            filename=part.get_filename(),
            content_type=part.get_content_type(),
        )
        for part in message.iter_attachments()
    )
