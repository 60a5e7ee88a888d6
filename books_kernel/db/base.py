"""
Module: books_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, and the TrackedBase mixin for row timestamps.
Architecture position: Kernel > DB.  The lowest-level import target inside
    the kernel; every model file imports from here.  MUST NOT import from
    models/, services/, storage/ or selectors/.

Invariants enforced:
    - UUID primary keys generated client-side (uuid4).
    - Decimal maps to ExactDecimal: Numeric(38, 9), or its exact string
      form on SQLite.  Never float for money or stock quantities.
    - Business dates are ``date``; timestamps are timezone-aware.

Defaults are Python-side (``default=``) rather than server-side so that the
in-memory backend, which never flushes, can materialise them through
``apply_column_defaults``.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

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


class ExactDecimal(TypeDecorator):
    """
    Numeric(38, 9) with exact round-trips on every dialect.

    SQLite has no fixed-point storage and keeps NUMERIC values as REAL, so
    there the value is stored as its decimal string instead.  No query
    compares or aggregates these columns in SQL.
    """

    impl = Numeric(38, 9)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(38, 9))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(str(value))
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to ExactDecimal, Numeric(38, 9) on PostgreSQL.
        - datetime maps to DateTime(timezone=True); date maps to Date.
        - int maps to BigInteger -- safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with created/updated timestamps.

    updated_at is row metadata, not bookkeeping data, so it may change even
    on otherwise immutable rows.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


def apply_column_defaults(obj: Base) -> Base:
    """
    Fill every unset column that declares a Python-side default.

    SQLAlchemy only applies ``default=`` at flush time; storage that keeps
    transient instances (the in-memory backend) calls this on insert instead.
    """
    for column_attr in inspect(type(obj)).column_attrs:
        if getattr(obj, column_attr.key) is not None:
            continue
        default = column_attr.columns[0].default
        if default is None:
            continue
        if default.is_callable:
            setattr(obj, column_attr.key, default.arg(None))
        elif default.is_scalar:
            setattr(obj, column_attr.key, default.arg)
    return obj


def clone_row(obj: Base) -> Base:
    """Detached copy of a model instance carrying every column value."""
    mapper = inspect(type(obj))
    return type(obj)(**{attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs})


# Re-export UUID for convenience
UUID = PyUUID
