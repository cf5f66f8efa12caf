"""
Notification templates.

``render_notification(template, data)`` returns a ``RenderedMessage`` with
a subject, an HTML body and a plain-text body.  Every value taken from
``data`` is HTML-escaped before it reaches the HTML body.

Keys read from ``data`` (all optional unless noted):
    brand_name, full_name, first_name, reference, company, role, message,
    notes, login_url, admin_url, temporary_password, email,
    invoice_no, total, currency, amount, method, payment_reference, sms
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from html import escape
from typing import Any, Mapping

from hotel_kernel.domain.notifications import RenderedMessage


class NotificationTemplate(str, Enum):
    ACCESS_REQUEST_RECEIVED = "ACCESS_REQUEST_RECEIVED"
    ACCESS_REQUEST_ADMIN_ALERT = "ACCESS_REQUEST_ADMIN_ALERT"
    ACCESS_NEEDS_INFO = "ACCESS_NEEDS_INFO"
    ACCESS_APPROVED = "ACCESS_APPROVED"
    ACCESS_REJECTED = "ACCESS_REJECTED"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    PAYMENT_RECEIPT = "PAYMENT_RECEIPT"


@dataclass(frozen=True)
class _Layout:
    subject: str
    title: str
    greeting: str
    intro: str
    meta: tuple[tuple[str, str], ...] = ()
    notes: str | None = None
    cta: tuple[str, str] | None = None
    footer: str | None = None


def _get(data: Mapping[str, Any], key: str, default: str = "-") -> str:
    value = data.get(key)
    if value is None or value == "":
        return default
    return str(value)


def _layout_for(template: NotificationTemplate, data: Mapping[str, Any]) -> _Layout:
    brand = _get(data, "brand_name", "LaFlo")
    reference = _get(data, "reference", "")
    full_name = _get(data, "full_name", "there")
    login_url = _get(data, "login_url", "")

    if template == NotificationTemplate.ACCESS_REQUEST_RECEIVED:
        return _Layout(
            subject=f"We received your access request [{reference}]",
            title="We received your access request",
            greeting=f"Hello {full_name},",
            intro=(
                f"Thanks for requesting access to {brand}. Our team will review "
                "your request and reach out with access details."
            ),
            meta=(
                ("Company", _get(data, "company")),
                ("Role", _get(data, "role")),
                ("Reference", reference),
            ),
            cta=("Go to login", login_url) if login_url else None,
            footer="If you did not request access, you can ignore this email.",
        )
    if template == NotificationTemplate.ACCESS_REQUEST_ADMIN_ALERT:
        admin_url = _get(data, "admin_url", "")
        return _Layout(
            subject="New access request",
            title="New access request",
            greeting="Hello,",
            intro=(
                "A new access request was submitted. Review and take action "
                "in the admin console."
            ),
            meta=(
                ("Name", full_name),
                ("Email", _get(data, "email")),
                ("Company", _get(data, "company")),
                ("Role", _get(data, "role")),
                ("Message", _get(data, "message")),
            ),
            cta=("Open access requests", admin_url) if admin_url else None,
            footer=f"Reference: {reference}",
        )
    if template == NotificationTemplate.ACCESS_NEEDS_INFO:
        return _Layout(
            subject=f"Additional information needed for your access request [{reference}]",
            title="More information needed",
            greeting=f"Hello {full_name},",
            intro="We need a bit more information to complete your access request.",
            meta=(("Reference", reference),),
            notes=data.get("notes") or None,
            footer=f"Reply to this email and keep {reference} in the subject.",
        )
    if template == NotificationTemplate.ACCESS_APPROVED:
        first_name = _get(data, "first_name", full_name)
        return _Layout(
            subject=f"Your {brand} access is approved [{reference}]",
            title="Access approved",
            greeting=f"Hello {first_name},",
            intro=(
                "Your access request has been approved. Sign in with the temporary "
                "password below; you will be asked to choose a new one."
            ),
            meta=(
                ("Reference", reference),
                ("Email", _get(data, "email")),
                ("Role", _get(data, "role")),
                ("Temporary password", _get(data, "temporary_password")),
            ),
            cta=("Go to login", login_url) if login_url else None,
            footer="This password is personal to you. Do not share it.",
        )
    if template == NotificationTemplate.ACCESS_REJECTED:
        return _Layout(
            subject=f"Your {brand} access request was rejected [{reference}]",
            title="Access request rejected",
            greeting=f"Hello {full_name},",
            intro="Your access request was not approved.",
            meta=(("Reference", reference),),
            notes=data.get("notes") or None,
        )
    if template == NotificationTemplate.INVOICE_ISSUED:
        invoice_no = _get(data, "invoice_no")
        return _Layout(
            subject=f"Your invoice {invoice_no}",
            title="Invoice issued",
            greeting=f"Hello {full_name},",
            intro="An invoice has been issued for your stay.",
            meta=(
                ("Invoice", invoice_no),
                ("Total", f"{_get(data, 'total')} {_get(data, 'currency', '')}".strip()),
            ),
        )
    if template == NotificationTemplate.PAYMENT_RECEIPT:
        return _Layout(
            subject=f"Payment received {_get(data, 'payment_reference')}",
            title="Payment received",
            greeting=f"Hello {full_name},",
            intro="Thank you. We have recorded your payment.",
            meta=(
                ("Amount", f"{_get(data, 'amount')} {_get(data, 'currency', '')}".strip()),
                ("Method", _get(data, "method")),
                ("Reference", _get(data, "payment_reference")),
            ),
        )
    raise ValueError(f"Unknown notification template: {template}")


def _render_html(layout: _Layout) -> str:
    parts = [
        "<html><body>",
        f"<h1>{escape(layout.title)}</h1>",
        f"<p>{escape(layout.greeting)}</p>",
        f"<p>{escape(layout.intro)}</p>",
    ]
    if layout.meta:
        parts.append("<table>")
        for label, value in layout.meta:
            parts.append(
                f"<tr><td><strong>{escape(label)}</strong></td><td>{escape(value)}</td></tr>"
            )
        parts.append("</table>")
    if layout.notes:
        parts.append(f"<p><strong>Notes:</strong> {escape(layout.notes)}</p>")
    if layout.cta:
        label, url = layout.cta
        parts.append(f'<p><a href="{escape(url, quote=True)}">{escape(label)}</a></p>')
    if layout.footer:
        parts.append(f"<p><small>{escape(layout.footer)}</small></p>")
    parts.append("</body></html>")
    return "\n".join(parts)


def _render_text(layout: _Layout) -> str:
    lines = [layout.title, "", layout.greeting, "", layout.intro]
    if layout.meta:
        lines.append("")
        lines.extend(f"{label}: {value}" for label, value in layout.meta)
    if layout.notes:
        lines.extend(["", f"Notes: {layout.notes}"])
    if layout.cta:
        label, url = layout.cta
        lines.extend(["", f"{label}: {url}"])
    if layout.footer:
        lines.extend(["", layout.footer])
    return "\n".join(lines)


def render_notification(
    template: NotificationTemplate | str,
    data: Mapping[str, Any],
) -> RenderedMessage:
    """Render ``template`` with ``data`` into subject, HTML and text bodies."""
    template = NotificationTemplate(template)
    layout = _layout_for(template, data)
    return RenderedMessage(
        subject=layout.subject,
        html=_render_html(layout),
        text=_render_text(layout),
    )


def render_sms(template: NotificationTemplate | str, data: Mapping[str, Any]) -> str:
    """Short single-line form for SMS: subject plus an optional ``sms`` body."""
    rendered = render_notification(template, data)
    body = data.get("sms")
    return f"{rendered.subject}: {body}" if body else rendered.subject
