"""
Module: inventory_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models. Provides the
    integer primary key convention, the type annotation map, and the
    timezone-preserving datetime type.
Architecture position: Kernel > DB. Lowest-level import target in the kernel;
    all model files import from here. MUST NOT import from models/,
    services/, selectors/, storage/ or outer layers.

Invariants enforced:
    - Integer surrogate keys, autoincrementing on PostgreSQL and SQLite
      (the persistence contract keeps the original serial ids).
    - Timestamps are stored and returned as timezone-aware UTC.
"""

from datetime import datetime, timezone
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
IdType = BigInteger().with_variant(Integer(), "sqlite")


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that round-trips as UTC on every backend.

    Contract:
        SQLite drops tzinfo on read; PostgreSQL returns it. This type
        normalizes both to an aware UTC ``datetime``.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is an autoincrementing integer primary key.
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger (Integer on SQLite).
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        int: IdType,
    }

    id: Mapped[int] = mapped_column(
        IdType,
        primary_key=True,
        autoincrement=True,
    )
