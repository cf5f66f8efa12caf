"""
Pytest fixtures for the hotel back-office test suite.

Provides:
- Structured log capture
- Deterministic clock and configuration
- Seeded ledger store (one room type, one room, one booking)
- Access request store and service with a fast credential hasher
- Recording / failing outbound senders and a synchronous notification gateway
- Snapshot store that fails on demand
- SQLite in-memory engine for the SQL snapshot store
"""

import json
import logging
import threading
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from hotel_config import get_active_config
from hotel_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from hotel_kernel.domain.clock import DeterministicClock
from hotel_kernel.domain.ledger import Booking, Room, RoomType
from hotel_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from hotel_kernel.exceptions import SnapshotError
from hotel_kernel.services.snapshot_service import InMemorySnapshotStore
from hotel_kernel.stores.access_store import AccessRequestStore
from hotel_kernel.stores.ledger_store import LedgerStore
from hotel_kernel.stores.locks import KeyedLocks
from hotel_services.access_provisioning import AccessProvisioningService
from hotel_services.ledger_service import FinancialLedgerService
from hotel_services.notification_gateway import NotificationGateway

BOOKING_ID = "bk-1"
GUEST_EMAIL = "guest@example.com"
ADMIN_EMAIL = "admin@laflo.local"
TEMP_PASSWORD = "TempFixed01A1!"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture hotel_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger_service):
            ledger_service.issue_invoice("bk-1")
            logs = captured_logs()
            assert any(r["message"] == "invoice_issued" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("hotel_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising real threads"
    )
    config.addinivalue_line(
        "markers", "sqlite: mark test as requiring the SQLite snapshot backend"
    )


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def hotel_config():
    """Default configuration with no environment overrides."""
    return get_active_config(environ={})


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def snapshot_store():
    return InMemorySnapshotStore()


class FlakySnapshotStore(InMemorySnapshotStore):
    """Fails the next ``fail_next`` saves, like a database that drops out."""

    def __init__(self):
        super().__init__()
        self.fail_next = 0

    def save(self, key, state):
        if self.fail_next:
            self.fail_next -= 1
            raise SnapshotError(key, "save", OSError("database unavailable"))
        super().save(key, state)


@pytest.fixture
def flaky_snapshot_store():
    return FlakySnapshotStore()


# =============================================================================
# Outbound collaborators
# =============================================================================


class RecordingEmailSender:
    """Keeps every message it is asked to send."""

    def __init__(self):
        self.sent: list[dict] = []
        self._lock = threading.Lock()

    def send_email(self, to, subject, html, text, *, timeout):
        with self._lock:
            self.sent.append(
                {"to": to, "subject": subject, "html": html, "text": text, "timeout": timeout}
            )

    def to(self, recipient: str) -> list[dict]:
        with self._lock:
            return [m for m in self.sent if m["to"] == recipient]


class FailingEmailSender:
    """Raises on every send, like an unreachable SMTP relay."""

    def __init__(self):
        self.attempts = 0

    def send_email(self, to, subject, html, text, *, timeout):
        self.attempts += 1
        raise ConnectionRefusedError("smtp relay unreachable")


class RecordingSmsSender:
    def __init__(self):
        self.sent: list[tuple[str, str, float]] = []

    def send_sms(self, to, message, *, timeout):
        self.sent.append((to, message, timeout))


class PlainTextHasher:
    """Fast stand-in for the werkzeug hasher."""

    def hash_credential(self, plaintext: str) -> str:
        return f"hashed:{plaintext}"


@pytest.fixture
def recording_email_sender():
    return RecordingEmailSender()


@pytest.fixture
def failing_email_sender():
    return FailingEmailSender()


@pytest.fixture
def recording_sms_sender():
    return RecordingSmsSender()


@pytest.fixture
def credential_hasher():
    return PlainTextHasher()


@pytest.fixture
def notification_gateway(recording_email_sender, recording_sms_sender):
    """Synchronous gateway: sends run inline, failures are still swallowed."""
    gateway = NotificationGateway(
        recording_email_sender,
        recording_sms_sender,
        timeout_seconds=5.0,
        synchronous=True,
        defaults={"brand_name": "LaFlo"},
    )
    yield gateway
    gateway.shutdown()


# =============================================================================
# Ledger fixtures
# =============================================================================


@pytest.fixture
def room_type():
    return RoomType(id="rt-std", name="Standard", base_rate=Decimal("50"))


@pytest.fixture
def booking():
    return Booking(
        id=BOOKING_ID,
        guest_id="guest-1",
        room_id="room-101",
        check_in_date=date(2024, 1, 1),
        check_out_date=date(2024, 1, 4),
        guest_email=GUEST_EMAIL,
    )


@pytest.fixture
def ledger_store(snapshot_store, room_type, booking):
    """Ledger store seeded with one 3-night booking at 50 per night."""
    store = LedgerStore(snapshot_store)
    store.put_room_type(room_type)
    store.put_room(Room(id="room-101", number="101", room_type_id=room_type.id))
    store.put_booking(booking)
    return store


@pytest.fixture
def ledger_service(ledger_store, deterministic_clock, locks, notification_gateway):
    return FinancialLedgerService(
        ledger_store,
        tax_rate=Decimal("0.10"),
        clock=deterministic_clock,
        locks=locks,
        notifications=notification_gateway,
    )


# =============================================================================
# Access provisioning fixtures
# =============================================================================


@pytest.fixture
def access_store(snapshot_store):
    return AccessRequestStore(snapshot_store)


@pytest.fixture
def access_service(
    access_store, notification_gateway, deterministic_clock, locks, credential_hasher
):
    return AccessProvisioningService(
        access_store,
        notification_gateway,
        admin_emails=(ADMIN_EMAIL,),
        clock=deterministic_clock,
        locks=locks,
        hasher=credential_hasher,
        credential_generator=lambda: TEMP_PASSWORD,
    )


# =============================================================================
# SQLite fixtures
# =============================================================================


@pytest.fixture
def sqlite_engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(sqlite_engine):
    return get_session_factory()


@pytest.fixture
def session(sqlite_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.close()
