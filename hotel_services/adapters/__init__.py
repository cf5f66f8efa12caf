"""Outbound adapters for the notification and credential collaborators."""

from hotel_services.adapters.credentials import (
    WerkzeugCredentialHasher,
    generate_temporary_credential,
)
from hotel_services.adapters.email import LoggingEmailSender, SmtpEmailSender, build_email_sender
from hotel_services.adapters.sms import LoggingSmsSender, TwilioSmsSender, build_sms_sender

__all__ = [
    "WerkzeugCredentialHasher",
    "generate_temporary_credential",
    "LoggingEmailSender",
    "SmtpEmailSender",
    "build_email_sender",
    "LoggingSmsSender",
    "TwilioSmsSender",
    "build_sms_sender",
]
