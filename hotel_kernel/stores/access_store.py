"""
AccessRequestStore -- active access requests, their replies, and users.

Responsibility:
    Holds the active set of access requests (terminal requests are
    removed, not archived), the append-only reply log, and the users
    created by approvals.  Persists to two snapshot keys:
    ``access_requests`` (requests and replies) and ``users``.

Architecture position:
    Kernel > Stores.  Callers hold the request/email locks from
    ``KeyedLocks``; the internal RLock keeps reads and snapshots
    consistent.

Invariants enforced:
    - User emails are unique (``add_user`` raises ``ConflictError``).
    - Replies outlive their request; removing a request keeps its replies.
    - A reply ``message_id`` is stored at most once.
    - ``savepoint`` undoes changes to one request, its replies and one
      user email when its block raises.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator

from hotel_kernel.domain.access import AccessRequest, AccessRequestReply, User
from hotel_kernel.exceptions import ConflictError
from hotel_kernel.logging_config import get_logger
from hotel_kernel.services.snapshot_service import SnapshotStore
from hotel_kernel.utils.serialization import (
    access_request_from_dict,
    reply_from_dict,
    to_primitive,
    user_from_dict,
)

logger = get_logger("stores.access")

REQUESTS_SNAPSHOT_KEY = "access_requests"
USERS_SNAPSHOT_KEY = "users"


class AccessRequestStore:
    def __init__(self, snapshot_store: SnapshotStore | None = None) -> None:
        self._snapshot_store = snapshot_store
        self._guard = threading.RLock()
        self._requests: dict[str, AccessRequest] = {}
        self._replies: list[AccessRequestReply] = []
        self._reply_by_message_id: dict[str, AccessRequestReply] = {}
        self._users: dict[str, User] = {}

    # -- requests ---------------------------------------------------------

    def add_request(self, request: AccessRequest) -> None:
        with self._guard:
            if request.id in self._requests:
                raise ConflictError(f"Access request already exists: {request.id}")
            self._requests[request.id] = request

    def replace_request(self, request: AccessRequest) -> None:
        with self._guard:
            if request.id not in self._requests:
                raise KeyError(request.id)
            self._requests[request.id] = request

    def remove_request(self, request_id: str) -> AccessRequest | None:
        with self._guard:
            return self._requests.pop(request_id, None)

    def get_request(self, request_id: str) -> AccessRequest | None:
        with self._guard:
            return self._requests.get(request_id)

    def find_active_by_email(self, email: str) -> list[AccessRequest]:
        with self._guard:
            return [r for r in self._requests.values() if r.email == email]

    def list_requests(self) -> list[AccessRequest]:
        """Active requests, newest first."""
        with self._guard:
            requests = list(self._requests.values())
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    # -- replies ----------------------------------------------------------

    def add_reply(self, reply: AccessRequestReply) -> None:
        with self._guard:
            if reply.message_id is not None:
                if reply.message_id in self._reply_by_message_id:
                    raise ConflictError(f"Reply already recorded: {reply.message_id}")
                self._reply_by_message_id[reply.message_id] = reply
            self._replies.append(reply)

    def get_reply(self, reply_id: str) -> AccessRequestReply | None:
        with self._guard:
            return next((r for r in self._replies if r.id == reply_id), None)

    def find_reply_by_message_id(self, message_id: str) -> AccessRequestReply | None:
        with self._guard:
            return self._reply_by_message_id.get(message_id)

    def list_replies(self, request_id: str) -> list[AccessRequestReply]:
        """Replies for a request, newest first."""
        with self._guard:
            replies = [r for r in self._replies if r.access_request_id == request_id]
        # Stable sort keeps insertion order among equal timestamps; reverse it.
        return list(reversed(sorted(replies, key=lambda r: r.received_at)))

    # -- users ------------------------------------------------------------

    def add_user(self, user: User) -> None:
        with self._guard:
            if user.email in self._users:
                raise ConflictError(f"User already exists: {user.email}")
            self._users[user.email] = user

    def get_user_by_email(self, email: str) -> User | None:
        with self._guard:
            return self._users.get(email)

    def list_users(self) -> list[User]:
        with self._guard:
            return list(self._users.values())

    # -- savepoint ---------------------------------------------------------

    @contextmanager
    def savepoint(self, request_id: str, email: str | None = None) -> Iterator[None]:
        """Restore the request, its replies and the user for ``email`` if the block raises.

        The caller holds the locks for ``request_id`` and ``email``.
        """
        with self._guard:
            saved_request = self._requests.get(request_id)
            saved_reply_ids = {r.id for r in self._replies if r.access_request_id == request_id}
            saved_user = self._users.get(email) if email else None
        try:
            yield
        except Exception:
            with self._guard:
                if saved_request is None:
                    self._requests.pop(request_id, None)
                else:
                    self._requests[request_id] = saved_request
                for reply in [
                    r for r in self._replies
                    if r.access_request_id == request_id and r.id not in saved_reply_ids
                ]:
                    self._replies.remove(reply)
                    if reply.message_id is not None:
                        self._reply_by_message_id.pop(reply.message_id, None)
                if email:
                    if saved_user is None:
                        self._users.pop(email, None)
                    else:
                        self._users[email] = saved_user
            logger.warning(
                "access_savepoint_rolled_back",
                extra={"access_request_id": request_id, "email": email},
            )
            raise

    # -- snapshot ---------------------------------------------------------

    def to_snapshot(self) -> dict[str, dict[str, Any]]:
        with self._guard:
            return {
                REQUESTS_SNAPSHOT_KEY: {
                    "requests": to_primitive(list(self._requests.values())),
                    "replies": to_primitive(self._replies),
                },
                USERS_SNAPSHOT_KEY: {
                    "users": to_primitive(list(self._users.values())),
                },
            }

    def restore(self, state: dict[str, dict[str, Any]]) -> None:
        requests_state = state.get(REQUESTS_SNAPSHOT_KEY) or {}
        users_state = state.get(USERS_SNAPSHOT_KEY) or {}
        with self._guard:
            self._requests = {
                r.id: r
                for r in map(access_request_from_dict, requests_state.get("requests", []))
            }
            self._replies = [reply_from_dict(r) for r in requests_state.get("replies", [])]
            self._reply_by_message_id = {
                r.message_id: r for r in self._replies if r.message_id is not None
            }
            self._users = {
                u.email: u for u in map(user_from_dict, users_state.get("users", []))
            }
        logger.info(
            "access_store_restored",
            extra={
                "request_count": len(self._requests),
                "user_count": len(self._users),
            },
        )

    def load(self) -> bool:
        """Restore from the snapshot store.  Returns False when nothing was saved."""
        if self._snapshot_store is None:
            return False
        state = {
            REQUESTS_SNAPSHOT_KEY: self._snapshot_store.load(REQUESTS_SNAPSHOT_KEY),
            USERS_SNAPSHOT_KEY: self._snapshot_store.load(USERS_SNAPSHOT_KEY),
        }
        if state[REQUESTS_SNAPSHOT_KEY] is None and state[USERS_SNAPSHOT_KEY] is None:
            return False
        self.restore(state)
        return True

    def persist(self) -> None:
        """Save requests/replies and users.  Raises ``SnapshotError`` on failure."""
        if self._snapshot_store is None:
            return
        snapshot = self.to_snapshot()
        for key, state in snapshot.items():
            self._snapshot_store.save(key, state)
