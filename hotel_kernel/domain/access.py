"""
Access provisioning domain types (``hotel_kernel.domain.access``).

Responsibility
--------------
Pure value objects for the access-request workflow: the request record,
inbound replies and their attachments, the provisioned user, the closed
role vocabulary and the request lifecycle state machine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ACCESS_TRANSITIONS`` defines the only valid status transitions.
  Terminal states (APPROVED, REJECTED) have no outgoing edges; a request
  that reaches one is removed from the active set.
* Non-terminal states may loop back to themselves: a second
  ``request_info`` refreshes the notes, a second reply is a no-op
  transition.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccessRequestStatus(str, Enum):
    """Access request lifecycle states."""

    PENDING = "PENDING"
    NEEDS_INFO = "NEEDS_INFO"
    INFO_RECEIVED = "INFO_RECEIVED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


_OPEN_TARGETS = frozenset({
    AccessRequestStatus.NEEDS_INFO,
    AccessRequestStatus.INFO_RECEIVED,
    AccessRequestStatus.APPROVED,
    AccessRequestStatus.REJECTED,
})

ACCESS_TRANSITIONS: dict[AccessRequestStatus, frozenset[AccessRequestStatus]] = {
    AccessRequestStatus.PENDING: _OPEN_TARGETS,
    AccessRequestStatus.NEEDS_INFO: _OPEN_TARGETS,
    AccessRequestStatus.INFO_RECEIVED: _OPEN_TARGETS,
    AccessRequestStatus.APPROVED: frozenset(),
    AccessRequestStatus.REJECTED: frozenset(),
}

TERMINAL_ACCESS_STATUSES: frozenset[AccessRequestStatus] = frozenset({
    AccessRequestStatus.APPROVED,
    AccessRequestStatus.REJECTED,
})


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    RECEPTIONIST = "RECEPTIONIST"
    HOUSEKEEPING = "HOUSEKEEPING"


DEFAULT_ROLE = Role.RECEPTIONIST

REFERENCE_PREFIX = "AR-"


@dataclass(frozen=True)
class AccessRequest:
    id: str
    full_name: str
    email: str
    company: str | None
    role: str | None
    message: str | None
    admin_notes: str | None
    status: AccessRequestStatus
    created_at: datetime
    updated_at: datetime
    last_reply_at: datetime | None = None

    @property
    def reference(self) -> str:
        """Human-facing reference quoted in every notification subject."""
        return f"{REFERENCE_PREFIX}{self.id}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ACCESS_STATUSES


@dataclass(frozen=True)
class ReplyAttachment:
    """
    A file carried by an inbound reply.

    ``size`` is what the mail declared; ``content`` is None when the
    source message did not include the part's body.
    """

    filename: str = "attachment"
    content_type: str = "application/octet-stream"
    size: int = 0
    content: bytes | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.content)

    @classmethod
    def from_content(
        cls,
        content: bytes | None,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> ReplyAttachment:
        return cls(
            filename=filename or "attachment",
            content_type=content_type or "application/octet-stream",
            size=len(content) if content else 0,
            content=content,
        )


@dataclass(frozen=True)
class AccessRequestReply:
    """Inbound message tied to a request.  Append-only."""

    id: str
    access_request_id: str
    from_email: str
    subject: str
    body_text: str
    received_at: datetime
    message_id: str | None = None
    body_html: str | None = None
    attachments: tuple[ReplyAttachment, ...] = ()


@dataclass(frozen=True)
class User:
    """Terminal artifact of an approval.  Owned by authentication afterwards."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    password_hash: str
    must_change_password: bool
    is_active: bool
    created_at: datetime


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_role(value: str | Role | None) -> Role:
    """
    Map free text to a Role.

    Trims, upper-cases and turns whitespace runs into ``_``.  Empty or
    unknown values fall back to RECEPTIONIST.
    """
    if isinstance(value, Role):
        return value
    if not value:
        return DEFAULT_ROLE
    key = re.sub(r"\s+", "_", value.strip().upper())
    return Role.__members__.get(key, DEFAULT_ROLE)


def parse_name(full_name: str) -> tuple[str, str]:
    """Split a full name into (first, last); missing parts become "User"."""
    parts = full_name.split()
    first = parts[0] if parts else "User"
    last = " ".join(parts[1:]) or "User"
    return first, last
