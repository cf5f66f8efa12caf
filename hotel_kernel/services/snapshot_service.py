"""
Snapshot persistence -- key-addressable load/save of store state.

Responsibility:
    Durable storage of the in-memory stores.  Each store serializes itself
    to a JSON-compatible dict; a ``SnapshotStore`` keeps the latest dict
    per key.

Architecture position:
    Kernel > Services.  Stores call ``save`` synchronously after every
    mutation, inside the per-entity lock.

Failure modes:
    - Any backend error is wrapped in ``SnapshotError`` (with the key and
      operation) and re-raised.
"""

import copy
import json
import threading
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from hotel_kernel.db.engine import session_scope
from hotel_kernel.domain.clock import Clock, SystemClock
from hotel_kernel.exceptions import SnapshotError
from hotel_kernel.logging_config import get_logger
from hotel_kernel.models.snapshot import SnapshotRecord

logger = get_logger("services.snapshot")


class SnapshotStore(Protocol):
    def save(self, key: str, state: dict[str, Any]) -> None: ...

    def load(self, key: str) -> dict[str, Any] | None: ...


class InMemorySnapshotStore:
    """
    Process-local snapshot store.

    States are passed through ``json`` on save so anything that would not
    survive a real backend fails here too.
    """

    def __init__(self) -> None:
        self._states: dict[str, str] = {}
        self._versions: dict[str, int] = {}
        self._lock = threading.Lock()

    def save(self, key: str, state: dict[str, Any]) -> None:
        try:
            encoded = json.dumps(state, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise SnapshotError(key, "save", exc) from exc
        with self._lock:
            self._states[key] = encoded
            self._versions[key] = self._versions.get(key, 0) + 1
            version = self._versions[key]
        logger.debug("snapshot_saved", extra={"snapshot_key": key, "version": version})

    def load(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            encoded = self._states.get(key)
        if encoded is None:
            return None
        return json.loads(encoded)

    def version(self, key: str) -> int:
        with self._lock:
            return self._versions.get(key, 0)


class SqlSnapshotStore:
    """Snapshot store backed by the ``snapshot_records`` table."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()

    def save(self, key: str, state: dict[str, Any]) -> None:
        # Writers for the same key are serialized so versions never collide.
        try:
            with self._lock, session_scope(self._session_factory) as session:
                record = session.execute(
                    select(SnapshotRecord).where(SnapshotRecord.key == key)
                ).scalar_one_or_none()
                now = self._clock.now()
                if record is None:
                    record = SnapshotRecord(
                        key=key, state=copy.deepcopy(state), version=1, saved_at=now
                    )
                    session.add(record)
                else:
                    record.state = copy.deepcopy(state)
                    record.version = record.version + 1
                    record.saved_at = now
                session.flush()
                version = record.version
        except Exception as exc:
            raise SnapshotError(key, "save", exc) from exc
        logger.debug("snapshot_saved", extra={"snapshot_key": key, "version": version})

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(
                    select(SnapshotRecord).where(SnapshotRecord.key == key)
                ).scalar_one_or_none()
                if record is None:
                    return None
                return copy.deepcopy(record.state)
        except Exception as exc:
            raise SnapshotError(key, "load", exc) from exc

    def version(self, key: str) -> int:
        with session_scope(self._session_factory) as session:
            record = session.execute(
                select(SnapshotRecord).where(SnapshotRecord.key == key)
            ).scalar_one_or_none()
            return record.version if record is not None else 0
