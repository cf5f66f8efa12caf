"""
hotel_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines and kernel stores: the
    financial ledger, access provisioning and notification delivery.

Architecture position:
    Services -- the only layer that talks to outbound adapters (SMTP,
    SMS, credential hashing) and uses wall-clock time by default.

        hotel_services/ -> hotel_engines/  (allowed)
        hotel_services/ -> hotel_kernel/   (allowed)
        hotel_services/ -> hotel_config/   (allowed)
        hotel_kernel/   -> hotel_services/ (forbidden)
"""

from hotel_services.access_provisioning import AccessProvisioningService
from hotel_services.back_office import BackOffice, build_snapshot_store
from hotel_services.ledger_service import FinancialLedgerService, IssueResult
from hotel_services.notification_gateway import NotificationGateway
from hotel_services.templates import NotificationTemplate, render_notification

__all__ = [
    "AccessProvisioningService",
    "BackOffice",
    "FinancialLedgerService",
    "IssueResult",
    "NotificationGateway",
    "NotificationTemplate",
    "build_snapshot_store",
    "render_notification",
]
