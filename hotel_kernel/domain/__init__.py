"""
Pure domain layer.

Value objects and status vocabularies with NO dependencies on:
- ORM (SQLAlchemy)
- Stores or locks
- Wall-clock time
- I/O
"""

from hotel_kernel.domain.access import (
    ACCESS_TRANSITIONS,
    TERMINAL_ACCESS_STATUSES,
    AccessRequest,
    AccessRequestReply,
    AccessRequestStatus,
    ReplyAttachment,
    Role,
    User,
    normalize_email,
    normalize_role,
    parse_name,
)
from hotel_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from hotel_kernel.domain.ledger import (
    COUNTED_PAYMENT_STATUSES,
    INVOICE_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    Booking,
    BookingStatus,
    Charge,
    ChargeCategory,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Room,
    RoomType,
    can_transition,
)
from hotel_kernel.domain.notifications import (
    Channel,
    CredentialHasher,
    EmailSender,
    RenderedMessage,
    SmsSender,
)

__all__ = [
    "ACCESS_TRANSITIONS",
    "TERMINAL_ACCESS_STATUSES",
    "AccessRequest",
    "AccessRequestReply",
    "AccessRequestStatus",
    "ReplyAttachment",
    "Role",
    "User",
    "normalize_email",
    "normalize_role",
    "parse_name",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "COUNTED_PAYMENT_STATUSES",
    "INVOICE_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "Booking",
    "BookingStatus",
    "Charge",
    "ChargeCategory",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Room",
    "RoomType",
    "can_transition",
    "Channel",
    "CredentialHasher",
    "EmailSender",
    "RenderedMessage",
    "SmsSender",
]
