"""
Module: hotel_kernel.db.base
Responsibility: Declarative base for the kernel's SQLAlchemy ORM models.
    Provides the UUID primary key convention and the type annotation map
    used by every mapped column.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel's persistence layer.  MUST NOT import from models/, stores/ or
    outer layers.

Invariants enforced:
    - UUID primary keys stored as String(36) so SQLite and PostgreSQL
      behave the same.
    - datetime maps to DateTime(timezone=True).
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, BigInteger, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID type stored as String(36) for cross-database portability."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all kernel models.

    Guarantees:
        - id is a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (snapshot versions only grow).
        - dict maps to JSON.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
        dict[str, Any]: JSON,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )
