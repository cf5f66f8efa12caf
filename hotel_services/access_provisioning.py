"""
hotel_services.access_provisioning -- Access request state machine.

Responsibility:
    Drives an access request from submission through information requests
    and replies to approval (which provisions a User with a temporary
    credential) or rejection.  Terminal requests leave the active set.

Architecture position:
    Services.  Composes ``AccessRequestStore``, ``KeyedLocks``, a
    ``CredentialHasher`` and an optional ``NotificationGateway``.

Invariants enforced:
    - An email belongs to at most one User or one active request.
      ``submit`` checks both under the ``email:<addr>`` lock.
    - Every transition runs under ``access_request:<id>``.  A writer that
      loses a race to approve/reject finds the request gone and raises
      ``AccessRequestNotFoundError``.
    - Lock order is request before email.
    - State mutation and snapshot save complete before any notification
      is dispatched, and notification outcome never feeds back into state.
    - Approval with an already-existing User removes the request and
      returns that User without creating a second one.

Failure modes:
    - MissingFieldError for a blank name or an unusable email on submit.
    - DuplicateAccessRequestError when the email is already taken.
    - AccessRequestNotFoundError for unknown or already-terminal requests.
    - AttachmentNotFoundError for a missing reply, index or attachment body.
    - SnapshotError when the save fails.  The request, its replies and any
      new user are rolled back first, so the call may be retried.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Iterable
from uuid import uuid4

from hotel_kernel.domain.access import (
    ACCESS_TRANSITIONS,
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
from hotel_kernel.domain.clock import Clock, SystemClock
from hotel_kernel.domain.ledger import can_transition
from hotel_kernel.domain.notifications import CredentialHasher
from hotel_kernel.exceptions import (
    AccessRequestNotFoundError,
    AttachmentNotFoundError,
    DuplicateAccessRequestError,
    InvalidStatusTransitionError,
    MissingFieldError,
)
from hotel_kernel.logging_config import LogContext, get_logger
from hotel_kernel.stores.access_store import AccessRequestStore
from hotel_kernel.stores.locks import KeyedLocks, access_request_key, email_key
from hotel_services.adapters.credentials import (
    WerkzeugCredentialHasher,
    generate_temporary_credential,
)
from hotel_services.inbound_replies import extract_request_reference
from hotel_services.templates import NotificationTemplate

if TYPE_CHECKING:
    from hotel_config.schema import HotelConfig
    from hotel_services.notification_gateway import NotificationGateway

logger = get_logger("services.access")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AccessProvisioningService:
    """Submit, request info, record replies, approve, reject."""

    def __init__(
        self,
        store: AccessRequestStore,
        notifications: NotificationGateway | None = None,
        *,
        admin_emails: Iterable[str] = (),
        app_url: str = "http://localhost:4212",
        brand_name: str = "LaFlo",
        clock: Clock | None = None,
        locks: KeyedLocks | None = None,
        hasher: CredentialHasher | None = None,
        credential_generator: Callable[[], str] = generate_temporary_credential,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._admin_emails = tuple(admin_emails)
        self._app_url = app_url.rstrip("/")
        self._brand_name = brand_name
        self._clock = clock or SystemClock()
        self._locks = locks or KeyedLocks()
        self._hasher = hasher or WerkzeugCredentialHasher()
        self._credential_generator = credential_generator

    @classmethod
    def from_config(
        cls,
        store: AccessRequestStore,
        config: HotelConfig,
        notifications: NotificationGateway | None = None,
        **kwargs: Any,
    ) -> AccessProvisioningService:
        return cls(
            store,
            notifications,
            admin_emails=config.admin_notify_emails,
            app_url=config.app_url,
            brand_name=config.brand_name,
            **kwargs,
        )

    @property
    def login_url(self) -> str:
        return f"{self._app_url}/login"

    @property
    def admin_url(self) -> str:
        return f"{self._app_url}/settings?tab=access-requests"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: str) -> AccessRequest:
        request = self._store.get_request(request_id)
        if request is None:
            raise AccessRequestNotFoundError(request_id)
        return request

    def list_requests(self) -> list[AccessRequest]:
        return self._store.list_requests()

    def list_replies(self, request_id: str) -> list[AccessRequestReply]:
        return self._store.list_replies(request_id)

    def list_users(self) -> list[User]:
        return self._store.list_users()

    def get_reply_attachment(self, reply_id: str, index: int) -> ReplyAttachment:
        """One attachment of a stored reply, by position.

        Replies are kept after their request is approved or rejected, so
        this works for closed requests too.
        """
        reply = self._store.get_reply(reply_id)
        if reply is None or not 0 <= index < len(reply.attachments):
            raise AttachmentNotFoundError(reply_id, index)
        attachment = reply.attachments[index]
        if not attachment.has_content:
            raise AttachmentNotFoundError(reply_id, index, "content_unavailable")
        return attachment

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(
        self,
        full_name: str,
        email: str,
        company: str | None = None,
        role: str | None = None,
        message: str | None = None,
    ) -> AccessRequest:
        """Create a PENDING request and notify the requester and admins."""
        full_name = _clean(full_name)
        if not full_name:
            raise MissingFieldError("full_name")
        raw_email = _clean(email)
        if not raw_email:
            raise MissingFieldError("email")
        if "@" not in raw_email:
            raise MissingFieldError("email", f"Invalid email address: {raw_email}")
        email = normalize_email(raw_email)

        with self._locks.hold(email_key(email)):
            if self._store.get_user_by_email(email) is not None:
                raise DuplicateAccessRequestError(email, "user_exists")
            if self._store.find_active_by_email(email):
                raise DuplicateAccessRequestError(email, "request_exists")
            now = self._clock.now()
            request = AccessRequest(
                id=uuid4().hex,
                full_name=full_name,
                email=email,
                company=_clean(company),
                role=_clean(role),
                message=_clean(message),
                admin_notes=None,
                status=AccessRequestStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            with self._store.savepoint(request.id):
                self._store.add_request(request)
                self._store.persist()

        with LogContext.bind(access_request_id=request.id):
            logger.info(
                "access_request_submitted",
                extra={"email": email, "requested_role": request.role},
            )
            data = self._request_data(request)
            self._notify(NotificationTemplate.ACCESS_REQUEST_RECEIVED, email, data, request)
            for admin in self._admin_emails:
                self._notify(
                    NotificationTemplate.ACCESS_REQUEST_ADMIN_ALERT,
                    admin,
                    {**data, "admin_url": self.admin_url},
                    request,
                )
        return request

    def request_info(self, request_id: str, notes: str | None = None) -> AccessRequest:
        """Move to NEEDS_INFO, store the notes and ask the requester for more."""
        with LogContext.bind(access_request_id=request_id):
            with self._locks.hold(access_request_key(request_id)):
                current = self._require_active(request_id)
                self._check_transition(current, AccessRequestStatus.NEEDS_INFO)
                updated = replace(
                    current,
                    status=AccessRequestStatus.NEEDS_INFO,
                    admin_notes=_clean(notes),
                    updated_at=self._clock.now(),
                )
                with self._store.savepoint(request_id):
                    self._store.replace_request(updated)
                    self._store.persist()

            self._log_transition(current, updated.status)
            self._notify(
                NotificationTemplate.ACCESS_NEEDS_INFO,
                updated.email,
                {**self._request_data(updated), "notes": updated.admin_notes},
                updated,
            )
            return updated

    def record_reply(
        self,
        request_id: str,
        from_email: str,
        subject: str,
        body_text: str,
        *,
        message_id: str | None = None,
        body_html: str | None = None,
        attachments: Iterable[ReplyAttachment] = (),
    ) -> AccessRequestReply:
        """Append a reply and move to INFO_RECEIVED.

        A reply whose ``message_id`` was already recorded is returned as is,
        with no new record and no transition.
        """
        with LogContext.bind(access_request_id=request_id):
            with self._locks.hold(access_request_key(request_id)):
                if message_id:
                    existing = self._store.find_reply_by_message_id(message_id)
                    if existing is not None:
                        logger.info(
                            "access_reply_duplicate",
                            extra={"message_id": message_id, "reply_id": existing.id},
                        )
                        return existing

                current = self._require_active(request_id)
                self._check_transition(current, AccessRequestStatus.INFO_RECEIVED)
                now = self._clock.now()
                reply = AccessRequestReply(
                    id=uuid4().hex,
                    access_request_id=request_id,
                    from_email=normalize_email(from_email or ""),
                    subject=subject or "",
                    body_text=body_text or "",
                    received_at=now,
                    message_id=message_id or None,
                    body_html=body_html,
                    attachments=tuple(attachments),
                )
                updated = replace(
                    current,
                    status=AccessRequestStatus.INFO_RECEIVED,
                    last_reply_at=now,
                    updated_at=now,
                )
                with self._store.savepoint(request_id):
                    self._store.add_reply(reply)
                    self._store.replace_request(updated)
                    self._store.persist()

            logger.info(
                "access_reply_recorded",
                extra={
                    "reply_id": reply.id,
                    "from_email": reply.from_email,
                    "attachment_count": len(reply.attachments),
                },
            )
            if current.status != updated.status:
                self._log_transition(current, updated.status)
            return reply

    def approve(self, request_id: str, role: str | Role | None = None) -> User:
        """Provision a User with a temporary credential and remove the request.

        ``role`` overrides the role named on the request.
        """
        with LogContext.bind(access_request_id=request_id):
            with self._locks.hold(access_request_key(request_id)):
                current = self._require_active(request_id)
                self._check_transition(current, AccessRequestStatus.APPROVED)
                with self._locks.hold(email_key(current.email)):
                    existing = self._store.get_user_by_email(current.email)
                    if existing is not None:
                        with self._store.savepoint(request_id):
                            self._store.remove_request(request_id)
                            self._store.persist()
                        logger.warning(
                            "access_request_user_exists",
                            extra={"email": current.email, "user_id": existing.id},
                        )
                        return existing

                    temporary = self._credential_generator()
                    first_name, last_name = parse_name(current.full_name)
                    user = User(
                        id=uuid4().hex,
                        email=current.email,
                        first_name=first_name,
                        last_name=last_name,
                        role=normalize_role(role if role is not None else current.role),
                        password_hash=self._hasher.hash_credential(temporary),
                        must_change_password=True,
                        is_active=True,
                        created_at=self._clock.now(),
                    )
                    with self._store.savepoint(request_id, current.email):
                        self._store.add_user(user)
                        self._store.remove_request(request_id)
                        self._store.persist()

            self._log_transition(current, AccessRequestStatus.APPROVED)
            logger.info(
                "user_provisioned",
                extra={"user_id": user.id, "email": user.email, "role": user.role.value},
            )
            self._notify(
                NotificationTemplate.ACCESS_APPROVED,
                user.email,
                {
                    **self._request_data(current),
                    "first_name": user.first_name,
                    "role": user.role.value,
                    "temporary_password": temporary,
                },
                current,
            )
            return user

    def reject(self, request_id: str, notes: str | None = None) -> None:
        """Remove the request as REJECTED and tell the requester."""
        with LogContext.bind(access_request_id=request_id):
            with self._locks.hold(access_request_key(request_id)):
                current = self._require_active(request_id)
                self._check_transition(current, AccessRequestStatus.REJECTED)
                with self._store.savepoint(request_id):
                    self._store.remove_request(request_id)
                    self._store.persist()

            self._log_transition(current, AccessRequestStatus.REJECTED)
            self._notify(
                NotificationTemplate.ACCESS_REJECTED,
                current.email,
                {**self._request_data(current), "notes": _clean(notes)},
                current,
            )

    def remove(self, request_id: str) -> None:
        """Hard delete from any state.  No notification."""
        with self._locks.hold(access_request_key(request_id)):
            if self._store.get_request(request_id) is None:
                raise AccessRequestNotFoundError(request_id)
            with self._store.savepoint(request_id):
                removed = self._store.remove_request(request_id)
                self._store.persist()
        logger.info(
            "access_request_removed",
            extra={"access_request_id": request_id, "status": removed.status.value},
        )

    # ------------------------------------------------------------------
    # Inbound email
    # ------------------------------------------------------------------

    def ingest_inbound_email(
        self,
        from_email: str,
        subject: str,
        body_text: str,
        message_id: str | None = None,
        body_html: str | None = None,
        attachments: Iterable[ReplyAttachment] = (),
    ) -> AccessRequestReply | None:
        """Attach an inbound email to its request, if one can be found.

        The target is the request named by an ``AR-<id>`` reference in the
        subject or body, else the sender's most recent NEEDS_INFO request.
        """
        if message_id:
            existing = self._store.find_reply_by_message_id(message_id)
            if existing is not None:
                return existing

        target = None
        request_id = extract_request_reference(subject, body_text)
        if request_id is not None:
            target = self._store.get_request(request_id)
        if target is None:
            sender = normalize_email(from_email or "")
            waiting = [
                r for r in self._store.find_active_by_email(sender)
                if r.status == AccessRequestStatus.NEEDS_INFO
            ]
            if waiting:
                target = max(waiting, key=lambda r: r.updated_at)

        if target is None:
            logger.debug(
                "inbound_email_unmatched",
                extra={"from_email": from_email, "message_id": message_id},
            )
            return None

        try:
            return self.record_reply(
                target.id,
                from_email,
                subject,
                body_text,
                message_id=message_id,
                body_html=body_html,
                attachments=attachments,
            )
        except AccessRequestNotFoundError:
            # Approved or rejected between lookup and write.
            logger.info(
                "inbound_email_request_closed",
                extra={"access_request_id": target.id, "message_id": message_id},
            )
            return None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_active(self, request_id: str) -> AccessRequest:
        request = self._store.get_request(request_id)
        if request is None or request.is_terminal:
            raise AccessRequestNotFoundError(request_id)
        return request

    def _check_transition(self, request: AccessRequest, target: AccessRequestStatus) -> None:
        if not can_transition(ACCESS_TRANSITIONS, request.status, target):
            raise InvalidStatusTransitionError(
                "AccessRequest", request.id, request.status.value, target.value,
            )

    def _log_transition(self, request: AccessRequest, target: AccessRequestStatus) -> None:
        logger.info(
            "access_request_transition",
            extra={
                "access_request_id": request.id,
                "from_status": request.status.value,
                "to_status": target.value,
            },
        )

    def _request_data(self, request: AccessRequest) -> dict[str, Any]:
        return {
            "brand_name": self._brand_name,
            "full_name": request.full_name,
            "email": request.email,
            "company": request.company,
            "role": request.role,
            "message": request.message,
            "reference": request.reference,
            "login_url": self.login_url,
        }

    def _notify(
        self,
        template: NotificationTemplate,
        recipient: str,
        data: dict[str, Any],
        request: AccessRequest,
    ) -> None:
        if self._notifications is None:
            return
        self._notifications.dispatch(template, recipient, data, reference=request.reference)
