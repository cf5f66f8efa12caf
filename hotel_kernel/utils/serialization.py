"""
JSON-compatible encoding of kernel records.

Snapshots hold plain dicts: ``Decimal`` as string, ``date``/``datetime``
as ISO-8601, enums by value, tuples as lists, ``bytes`` as base64 text.
``canonicalize_json`` produces the sorted, whitespace-free form used for
checksums.
"""

import base64
import dataclasses
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from hotel_kernel.domain.access import (
    AccessRequest,
    AccessRequestReply,
    AccessRequestStatus,
    ReplyAttachment,
    Role,
    User,
)
from hotel_kernel.domain.ledger import (
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
)


def to_primitive(value: Any) -> Any:
    """Recursively convert a record (or container of records) to JSON types."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_primitive(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, dict):
        return {str(k): to_primitive(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_primitive(v) for v in value]
    return value


def canonicalize_json(data: Any) -> str:
    """Sorted-key, whitespace-free JSON."""
    return json.dumps(
        to_primitive(data), sort_keys=True, separators=(",", ":"), default=str
    )


def hash_payload(data: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form."""
    return hashlib.sha256(canonicalize_json(data).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _d(value: str) -> date:
    # Bookings may carry either a date or a full timestamp.
    if "T" in value:
        return datetime.fromisoformat(value)
    return date.fromisoformat(value)


def room_type_from_dict(data: dict) -> RoomType:
    return RoomType(id=data["id"], name=data["name"], base_rate=Decimal(data["base_rate"]))


def room_from_dict(data: dict) -> Room:
    return Room(id=data["id"], number=data["number"], room_type_id=data["room_type_id"])


def booking_from_dict(data: dict) -> Booking:
    return Booking(
        id=data["id"],
        guest_id=data["guest_id"],
        room_id=data.get("room_id"),
        check_in_date=_d(data["check_in_date"]),
        check_out_date=_d(data["check_out_date"]),
        status=BookingStatus(data["status"]),
        total_amount=Decimal(data["total_amount"]),
        paid_amount=Decimal(data["paid_amount"]),
        guest_email=data.get("guest_email"),
    )


def charge_from_dict(data: dict) -> Charge:
    return Charge(
        id=data["id"],
        booking_id=data["booking_id"],
        description=data["description"],
        category=ChargeCategory(data["category"]),
        quantity=int(data["quantity"]),
        unit_price=Decimal(data["unit_price"]),
        amount=Decimal(data["amount"]),
        created_at=_dt(data.get("created_at")),
        voided=bool(data.get("voided", False)),
        void_reason=data.get("void_reason"),
    )


def invoice_from_dict(data: dict) -> Invoice:
    return Invoice(
        id=data["id"],
        booking_id=data["booking_id"],
        invoice_no=data["invoice_no"],
        lines=tuple(charge_from_dict(line) for line in data["lines"]),
        subtotal=Decimal(data["subtotal"]),
        tax=Decimal(data["tax"]),
        total=Decimal(data["total"]),
        tax_rate=Decimal(data["tax_rate"]),
        issued_at=_dt(data["issued_at"]),
        status=InvoiceStatus(data["status"]),
        created_at=_dt(data["created_at"]),
        updated_at=_dt(data["updated_at"]),
        revision=int(data.get("revision", 1)),
    )


def payment_from_dict(data: dict) -> Payment:
    return Payment(
        id=data["id"],
        booking_id=data["booking_id"],
        amount=Decimal(data["amount"]),
        method=PaymentMethod(data["method"]),
        reference=data["reference"],
        status=PaymentStatus(data["status"]),
        processed_at=_dt(data["processed_at"]),
        status_reason=data.get("status_reason"),
    )


def access_request_from_dict(data: dict) -> AccessRequest:
    return AccessRequest(
        id=data["id"],
        full_name=data["full_name"],
        email=data["email"],
        company=data.get("company"),
        role=data.get("role"),
        message=data.get("message"),
        admin_notes=data.get("admin_notes"),
        status=AccessRequestStatus(data["status"]),
        created_at=_dt(data["created_at"]),
        updated_at=_dt(data["updated_at"]),
        last_reply_at=_dt(data.get("last_reply_at")),
    )


def reply_from_dict(data: dict) -> AccessRequestReply:
    return AccessRequestReply(
        id=data["id"],
        access_request_id=data["access_request_id"],
        from_email=data["from_email"],
        subject=data["subject"],
        body_text=data["body_text"],
        received_at=_dt(data["received_at"]),
        message_id=data.get("message_id"),
        body_html=data.get("body_html"),
        attachments=tuple(map(attachment_from_dict, data.get("attachments", ()))),
    )


def attachment_from_dict(data: dict) -> ReplyAttachment:
    content = data.get("content")
    return ReplyAttachment(
        filename=data["filename"],
        content_type=data["content_type"],
        size=int(data["size"]),
        content=base64.b64decode(content) if content is not None else None,
    )


def user_from_dict(data: dict) -> User:
    return User(
        id=data["id"],
        email=data["email"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        role=Role(data["role"]),
        password_hash=data["password_hash"],
        must_change_password=bool(data["must_change_password"]),
        is_active=bool(data["is_active"]),
        created_at=_dt(data["created_at"]),
    )
