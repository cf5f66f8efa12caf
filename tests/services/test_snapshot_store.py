"""Snapshot store tests for the in-memory and SQL backends."""

from decimal import Decimal

import pytest

from hotel_kernel.db.engine import get_session_factory, init_engine_from_url, reset_engine
from hotel_kernel.exceptions import SnapshotError
from hotel_kernel.services.snapshot_service import InMemorySnapshotStore, SqlSnapshotStore


class TestInMemorySnapshotStore:
    def test_save_and_load(self):
        store = InMemorySnapshotStore()
        store.save("ledger", {"invoices": [{"id": "inv-1"}]})
        assert store.load("ledger") == {"invoices": [{"id": "inv-1"}]}
        assert store.load("users") is None

    def test_version_bumps_per_key(self):
        store = InMemorySnapshotStore()
        assert store.version("ledger") == 0
        store.save("ledger", {})
        store.save("ledger", {"a": 1})
        store.save("users", {})
        assert store.version("ledger") == 2
        assert store.version("users") == 1

    def test_loaded_state_is_a_copy(self):
        store = InMemorySnapshotStore()
        store.save("ledger", {"items": [1]})
        store.load("ledger")["items"].append(2)
        assert store.load("ledger") == {"items": [1]}

    def test_unserializable_state_raises(self):
        store = InMemorySnapshotStore()
        with pytest.raises(SnapshotError) as exc_info:
            store.save("ledger", {"amount": Decimal("1.00")})
        assert exc_info.value.key == "ledger"
        assert exc_info.value.operation == "save"
        assert store.version("ledger") == 0


@pytest.mark.sqlite
class TestSqlSnapshotStore:
    def test_save_and_load(self, session_factory, deterministic_clock):
        store = SqlSnapshotStore(session_factory, deterministic_clock)
        store.save("ledger", {"invoices": [{"id": "inv-1", "total": "165.00"}]})
        assert store.load("ledger") == {"invoices": [{"id": "inv-1", "total": "165.00"}]}
        assert store.load("users") is None

    def test_overwrite_bumps_version(self, session_factory, deterministic_clock):
        store = SqlSnapshotStore(session_factory, deterministic_clock)
        store.save("ledger", {"n": 1})
        store.save("ledger", {"n": 2})
        assert store.version("ledger") == 2
        assert store.load("ledger") == {"n": 2}

    def test_survives_new_store_instance(self, session_factory, deterministic_clock):
        SqlSnapshotStore(session_factory, deterministic_clock).save("users", {"users": []})
        assert SqlSnapshotStore(session_factory).load("users") == {"users": []}

    def test_backend_errors_are_wrapped(self, session_factory, deterministic_clock):
        store = SqlSnapshotStore(session_factory, deterministic_clock)
        with pytest.raises(SnapshotError) as exc_info:
            store.save("ledger", {"amount": Decimal("1.00")})
        assert exc_info.value.operation == "save"
        assert store.version("ledger") == 0

    def test_load_without_tables(self, deterministic_clock):
        init_engine_from_url("sqlite://")
        try:
            store = SqlSnapshotStore(get_session_factory(), deterministic_clock)
            with pytest.raises(SnapshotError) as exc_info:
                store.load("ledger")
            assert exc_info.value.operation == "load"
        finally:
            reset_engine()
