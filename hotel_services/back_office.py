"""
hotel_services.back_office -- Central wiring for the back-office services.

Responsibility:
    Builds the snapshot store, both record stores, the notification
    gateway and the two services exactly once from a ``HotelConfig``, and
    restores any previously saved state.

Architecture position:
    Services -- top of the service layer; the only place where stores,
    adapters and services are constructed and composed.

Invariants enforced:
    - One ``KeyedLocks`` registry is shared by both services.
    - One ``Clock`` instance is shared by every component.
    - Stored state is loaded before the services are handed out.
    - The first BackOffice in a process installs JSON logging at the
      configured ``log_level``; an earlier ``configure_logging`` call wins.

Failure modes:
    - SnapshotError if the configured database cannot be read at startup.

Usage:
    from hotel_config import get_active_config
    from hotel_services.back_office import BackOffice

    office = BackOffice(get_active_config())
    office.ledger.issue_invoice(booking_id)
    office.access.submit("Jane Doe", "jane@example.com")
    office.close()
"""

from __future__ import annotations

from hotel_config.schema import HotelConfig
from hotel_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from hotel_kernel.domain.clock import Clock, SystemClock
from hotel_kernel.domain.notifications import CredentialHasher, EmailSender, SmsSender
from hotel_kernel.logging_config import configure_logging, get_logger
from hotel_kernel.services.snapshot_service import (
    InMemorySnapshotStore,
    SnapshotStore,
    SqlSnapshotStore,
)
from hotel_kernel.stores.access_store import AccessRequestStore
from hotel_kernel.stores.ledger_store import LedgerStore
from hotel_kernel.stores.locks import KeyedLocks
from hotel_services.access_provisioning import AccessProvisioningService
from hotel_services.adapters.email import build_email_sender
from hotel_services.adapters.sms import build_sms_sender
from hotel_services.ledger_service import FinancialLedgerService
from hotel_services.notification_gateway import NotificationGateway

logger = get_logger("services.back_office")


def build_snapshot_store(config: HotelConfig, clock: Clock | None = None) -> SnapshotStore:
    """SQL-backed when ``database_url`` is set, otherwise process-local."""
    if not config.database_url:
        return InMemorySnapshotStore()
    init_engine_from_url(config.database_url)
    create_tables()
    return SqlSnapshotStore(get_session_factory(), clock)


class BackOffice:
    """Owns every store, adapter and service for one process."""

    def __init__(
        self,
        config: HotelConfig,
        *,
        clock: Clock | None = None,
        snapshot_store: SnapshotStore | None = None,
        email_sender: EmailSender | None = None,
        sms_sender: SmsSender | None = None,
        hasher: CredentialHasher | None = None,
        synchronous_notifications: bool = False,
    ) -> None:
        self.config = config
        configure_logging(level=config.log_level)
        self.clock = clock or SystemClock()
        self.locks = KeyedLocks()

        self.snapshot_store = snapshot_store or build_snapshot_store(config, self.clock)
        self.ledger_store = LedgerStore(self.snapshot_store)
        self.access_store = AccessRequestStore(self.snapshot_store)
        ledger_loaded = self.ledger_store.load()
        access_loaded = self.access_store.load()

        self.notifications = NotificationGateway(
            email_sender or build_email_sender(config),
            sms_sender or build_sms_sender(config),
            timeout_seconds=config.notifications.timeout_seconds,
            max_workers=config.notifications.max_workers,
            synchronous=synchronous_notifications,
            defaults={"brand_name": config.brand_name},
        )

        self.ledger = FinancialLedgerService.from_config(
            self.ledger_store,
            config,
            clock=self.clock,
            locks=self.locks,
            notifications=self.notifications,
        )
        self.access = AccessProvisioningService.from_config(
            self.access_store,
            config,
            self.notifications,
            clock=self.clock,
            locks=self.locks,
            hasher=hasher,
        )

        logger.info(
            "back_office_started",
            extra={
                "config_id": config.config_id,
                "snapshot_backend": type(self.snapshot_store).__name__,
                "ledger_restored": ledger_loaded,
                "access_restored": access_loaded,
            },
        )

    def close(self, timeout: float | None = None) -> None:
        """Wait for outstanding notifications, then stop the worker pool."""
        self.notifications.drain(timeout)
        self.notifications.shutdown()
