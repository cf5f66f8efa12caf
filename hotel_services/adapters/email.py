"""
Email senders.

``SmtpEmailSender`` delivers through smtplib with a socket timeout on every
connection.  ``LoggingEmailSender`` is used when no SMTP host is configured;
it records the message at INFO and delivers nothing.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from hotel_config.schema import EmailSettings, HotelConfig, SmtpSettings
from hotel_kernel.logging_config import get_logger

logger = get_logger("adapters.email")


class SmtpEmailSender:
    def __init__(self, smtp: SmtpSettings, sender: EmailSettings) -> None:
        self._smtp = smtp
        self._sender = sender

    def _build_message(self, to: str, subject: str, html: str, text: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self._sender.from_name, self._sender.from_address))
        msg["To"] = to
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        *,
        timeout: float,
    ) -> None:
        msg = self._build_message(to, subject, html, text)
        if self._smtp.secure:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                self._smtp.host, self._smtp.port, timeout=timeout
            )
        else:
            server = smtplib.SMTP(self._smtp.host, self._smtp.port, timeout=timeout)
        with server:
            if not self._smtp.secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if self._smtp.user:
                server.login(self._smtp.user, self._smtp.password)
            server.send_message(msg)
        logger.info("email_sent", extra={"to": to, "subject": subject})


class LoggingEmailSender:
    """Development sender: logs instead of delivering."""

    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        *,
        timeout: float,
    ) -> None:
        logger.info(
            "email_not_configured",
            extra={"to": to, "subject": subject, "text_preview": text[:200]},
        )


def build_email_sender(config: HotelConfig):
    if config.smtp.configured:
        return SmtpEmailSender(config.smtp, config.email)
    return LoggingEmailSender()
