"""In-memory record stores with snapshot persistence."""

from hotel_kernel.stores.access_store import AccessRequestStore
from hotel_kernel.stores.ledger_store import LedgerStore
from hotel_kernel.stores.locks import KeyedLocks

__all__ = ["AccessRequestStore", "LedgerStore", "KeyedLocks"]
