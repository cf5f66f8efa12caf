"""
SnapshotRecord -- one row per snapshot key.

Each save replaces ``state`` with the full JSON document for that key and
bumps ``version``; the row is never deleted.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from hotel_kernel.db.base import Base


class SnapshotRecord(Base):
    __tablename__ = "snapshot_records"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    state: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    saved_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<SnapshotRecord {self.key} v{self.version}>"
