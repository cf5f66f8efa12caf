"""ORM models.  Importing this package registers every table on Base.metadata."""

from hotel_kernel.models.snapshot import SnapshotRecord

__all__ = ["SnapshotRecord"]
