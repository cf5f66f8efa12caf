"""
Structured JSON logging for the back office.

Every record is written as one JSON line holding the timestamp, level,
logger name and event name (the log message), the booking or access
request the current operation is scoped to, and the record's ``extra``
fields.  A ``HotelKernelError`` logged with ``exc_info`` adds its ``code``
and public attributes as ``exc_*`` fields, so a ``notification_failed``
line carries everything an operator needs to resend by hand.

Services scope their work with ``LogContext.bind``::

    with LogContext.bind(booking_id=booking_id):
        logger.info("invoice_issued", extra={"invoice_no": invoice.invoice_no})
"""

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from hotel_kernel.exceptions import HotelKernelError

_LOGGER_PREFIX = "hotel_kernel"

_EMPTY_SCOPE: Mapping[str, str] = MappingProxyType({})
_scope: ContextVar[Mapping[str, str]] = ContextVar("hotel_log_scope", default=_EMPTY_SCOPE)


class LogContext:
    """Entity scope stamped onto every record logged inside ``bind``.

    The scope lives in a ContextVar, so it follows the calling thread and
    is copied explicitly onto notification worker threads.
    """

    FIELDS = ("booking_id", "access_request_id")

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        unknown = sorted(set(fields) - set(cls.FIELDS))
        if unknown:
            raise TypeError(f"Unknown log scope field(s): {', '.join(unknown)}")
        scope = dict(_scope.get())
        scope.update((k, v) for k, v in fields.items() if v is not None)
        token = _scope.set(MappingProxyType(scope))
        try:
            yield
        finally:
            _scope.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_scope.get())

    @staticmethod
    def clear() -> None:
        _scope.set(_EMPTY_SCOPE)


# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    # Decimal amounts, UUIDs and anything else render as text.
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    if isinstance(exc, HotelKernelError):
        fields["exc_code"] = exc.code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_scope.get(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.ledger")`` -> ``hotel_kernel.services.ledger``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> bool:
    """Install the JSON handler on ``hotel_kernel``.

    Only the first call has an effect; it returns True, later calls False.
    ``level`` accepts a name such as the configured ``log_level``.
    """
    global _configured
    with _lock:
        if _configured:
            return False
        _configured = True

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)
    return True


def reset_logging() -> None:
    """Undo ``configure_logging``.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
