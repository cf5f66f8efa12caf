"""
SMS senders.

``TwilioSmsSender`` posts to the Twilio Messages REST endpoint with basic
auth and a request timeout.  ``LoggingSmsSender`` logs a mock send when
Twilio credentials are absent.
"""

from __future__ import annotations

import requests

from hotel_config.schema import HotelConfig, SmsSettings
from hotel_kernel.logging_config import get_logger

logger = get_logger("adapters.sms")

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioSmsSender:
    def __init__(self, settings: SmsSettings, session: requests.Session | None = None) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    def send_sms(self, to: str, message: str, *, timeout: float) -> None:
        """Raises ``requests.RequestException`` on transport or HTTP errors."""
        sid = self._settings.twilio_account_sid
        response = self._session.post(
            TWILIO_MESSAGES_URL.format(sid=sid),
            data={"To": to, "From": self._settings.from_phone, "Body": message},
            auth=(sid, self._settings.twilio_auth_token),
            timeout=timeout,
        )
        response.raise_for_status()
        logger.info("sms_sent", extra={"to": to, "sid": response.json().get("sid")})


class LoggingSmsSender:
    """Mock sender used when Twilio is not configured."""

    def send_sms(self, to: str, message: str, *, timeout: float) -> None:
        logger.info("sms_not_configured", extra={"to": to, "message_preview": message[:160]})


def build_sms_sender(config: HotelConfig):
    if config.sms.configured:
        return TwilioSmsSender(config.sms)
    return LoggingSmsSender()
