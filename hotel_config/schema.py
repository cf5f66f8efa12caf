"""
Configuration schema -- frozen dataclasses produced by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class EmailSettings:
    from_name: str
    from_address: str
    admin_notify_emails: tuple[str, ...] = ()


@dataclass(frozen=True)
class SmtpSettings:
    host: str = ""
    port: int = 587
    user: str = ""
    password: str = field(default="", repr=False)
    secure: bool = False

    @property
    def configured(self) -> bool:
        return bool(self.host)


@dataclass(frozen=True)
class SmsSettings:
    twilio_account_sid: str = ""
    twilio_auth_token: str = field(default="", repr=False)
    from_phone: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.from_phone)


@dataclass(frozen=True)
class NotificationSettings:
    timeout_seconds: float = 10.0
    max_workers: int = 2


@dataclass(frozen=True)
class HotelConfig:
    """
    Runtime configuration for the ledger and access-provisioning services.

    ``tax_rate`` is a fraction (``Decimal("0.10")`` for 10%).
    """

    config_id: str
    version: int
    tax_rate: Decimal
    currency: str
    invoice_prefix: str
    brand_name: str
    app_url: str
    log_level: str
    database_url: str
    email: EmailSettings
    smtp: SmtpSettings
    sms: SmsSettings
    notifications: NotificationSettings
    checksum: str = ""

    @property
    def admin_notify_emails(self) -> tuple[str, ...]:
        """Configured admin recipients, falling back to the sender address."""
        if self.email.admin_notify_emails:
            return self.email.admin_notify_emails
        return (self.email.from_address,)

    @property
    def login_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/login"
