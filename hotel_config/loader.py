"""
Configuration Loader (``hotel_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment-variable overrides
and parses the result into a frozen ``HotelConfig``.  Runtime callers use
``hotel_config.get_active_config()`` rather than this module directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``0 <= tax_rate < 1``; notification timeout and worker count positive.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from hotel_config.schema import (
    EmailSettings,
    HotelConfig,
    NotificationSettings,
    SmsSettings,
    SmtpSettings,
)
from hotel_kernel.exceptions import ConfigurationError

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "HOTEL_TAX_RATE": ("ledger", "tax_rate"),
    "HOTEL_CURRENCY": ("ledger", "currency"),
    "HOTEL_INVOICE_PREFIX": ("ledger", "invoice_prefix"),
    "HOTEL_APP_URL": ("app", "app_url"),
    "APP_URL": ("app", "app_url"),
    "LOG_LEVEL": ("app", "log_level"),
    "HOTEL_DATABASE_URL": ("persistence", "database_url"),
    "EMAIL_FROM": ("email", "from_address"),
    "EMAIL_FROM_NAME": ("email", "from_name"),
    "ACCESS_REQUEST_NOTIFY_EMAILS": ("email", "admin_notify_emails"),
    "SMTP_HOST": ("smtp", "host"),
    "SMTP_PORT": ("smtp", "port"),
    "SMTP_USER": ("smtp", "user"),
    "SMTP_PASS": ("smtp", "password"),
    "SMTP_SECURE": ("smtp", "secure"),
    "TWILIO_ACCOUNT_SID": ("sms", "twilio_account_sid"),
    "TWILIO_AUTH_TOKEN": ("sms", "twilio_auth_token"),
    "TWILIO_FROM_PHONE": ("sms", "from_phone"),
    "NOTIFICATION_TIMEOUT_SECONDS": ("notifications", "timeout_seconds"),
    "NOTIFICATION_MAX_WORKERS": ("notifications", "max_workers"),
}

_SECRET_KEYS = frozenset({"password", "twilio_auth_token"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    merged = {section: dict(values or {}) for section, values in data.items()
              if isinstance(values, dict)}
    merged.update({k: v for k, v in data.items() if not isinstance(v, dict)})
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        merged.setdefault(section, {})[key] = value
    return merged


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_emails(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(e.strip().lower() for e in items if e and e.strip())


def _parse_tax_rate(value: Any) -> Decimal:
    try:
        rate = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError("ledger.tax_rate", f"not a number: {value!r}") from exc
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ConfigurationError("ledger.tax_rate", f"must be in [0, 1): {value!r}")
    return rate


def _parse_positive(field_name: str, value: Any, cast):
    try:
        parsed = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(field_name, f"not a number: {value!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(field_name, f"must be positive: {value!r}")
    return parsed


def parse_config(data: dict[str, Any]) -> HotelConfig:
    """Parse a merged configuration dict into ``HotelConfig``."""
    ledger = data.get("ledger", {})
    app = data.get("app", {})
    persistence = data.get("persistence", {})
    email = data.get("email", {})
    smtp = data.get("smtp", {})
    sms = data.get("sms", {})
    notifications = data.get("notifications", {})

    from_address = str(email.get("from_address") or "").strip().lower()
    if not from_address:
        raise ConfigurationError("email.from_address", "required")

    prefix = str(ledger.get("invoice_prefix") or "INV").strip()
    if not prefix:
        raise ConfigurationError("ledger.invoice_prefix", "must not be blank")

    config = HotelConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        tax_rate=_parse_tax_rate(ledger.get("tax_rate", "0.10")),
        currency=str(ledger.get("currency", "USD")).upper(),
        invoice_prefix=prefix,
        brand_name=str(app.get("brand_name", "LaFlo")),
        app_url=str(app.get("app_url", "http://localhost:4212")).rstrip("/"),
        log_level=str(app.get("log_level", "INFO")).upper(),
        database_url=str(persistence.get("database_url") or ""),
        email=EmailSettings(
            from_name=str(email.get("from_name") or ""),
            from_address=from_address,
            admin_notify_emails=_parse_emails(email.get("admin_notify_emails")),
        ),
        smtp=SmtpSettings(
            host=str(smtp.get("host") or ""),
            port=_parse_positive("smtp.port", smtp.get("port", 587), int),
            user=str(smtp.get("user") or ""),
            password=str(smtp.get("password") or ""),
            secure=_parse_bool(smtp.get("secure", False)),
        ),
        sms=SmsSettings(
            twilio_account_sid=str(sms.get("twilio_account_sid") or ""),
            twilio_auth_token=str(sms.get("twilio_auth_token") or ""),
            from_phone=str(sms.get("from_phone") or ""),
        ),
        notifications=NotificationSettings(
            timeout_seconds=_parse_positive(
                "notifications.timeout_seconds",
                notifications.get("timeout_seconds", 10),
                float,
            ),
            max_workers=_parse_positive(
                "notifications.max_workers", notifications.get("max_workers", 2), int,
            ),
        ),
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON form, with secrets blanked.

    Identical ``data`` always produces identical checksums.
    """
    redacted = {
        section: (
            {k: ("***" if k in _SECRET_KEYS else v) for k, v in values.items()}
            if isinstance(values, dict) else values
        )
        for section, values in data.items()
    }
    canonical = json.dumps(redacted, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
