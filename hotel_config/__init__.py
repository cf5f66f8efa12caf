"""
hotel_config -- single public entrypoint for back-office configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    It loads ``sets/default.yaml`` (or an explicit path), applies
    environment overrides and returns a frozen ``HotelConfig``.

Architecture position:
    Configuration -- sits above ``hotel_kernel`` and below
    ``hotel_services``.  The kernel never imports from here; services
    receive a ``HotelConfig`` by injection.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigurationError`` -- a value fails validation.

Audit relevance:
    Every successful call emits a ``HOTEL_CONFIG_TRACE`` log entry with the
    config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Mapping

from hotel_config.loader import (
    apply_env_overrides,
    compute_checksum,
    load_yaml_file,
    parse_config,
)
from hotel_config.schema import (
    EmailSettings,
    HotelConfig,
    NotificationSettings,
    SmsSettings,
    SmtpSettings,
)

_logger = logging.getLogger("hotel_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> HotelConfig:
    """The public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to hotel_config/sets/default.yaml.
        environ: Environment mapping for overrides.  Defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If a value fails validation.
    """
    path = config_path or _DEFAULT_CONFIG_FILE
    raw = load_yaml_file(path)
    merged = apply_env_overrides(raw, os.environ if environ is None else environ)
    config = parse_config(merged)
    config = replace(config, checksum=compute_checksum(merged))

    _logger.info(
        "HOTEL_CONFIG_TRACE",
        extra={
            "trace_type": "HOTEL_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "smtp_configured": config.smtp.configured,
            "sms_configured": config.sms.configured,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "HotelConfig",
    "EmailSettings",
    "NotificationSettings",
    "SmsSettings",
    "SmtpSettings",
]
