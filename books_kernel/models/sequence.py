"""
Named monotonic counters.

Each row is one sequence (``ledger_entry``, ``inventory_movement``,
``document_number:sale`` ...).  Values are allocated under a row lock by the
storage layer's ``next_value``; aggregate max-plus-one is never used.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
