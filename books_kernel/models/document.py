"""
Module: books_kernel.models.document
Responsibility: Sales and purchase documents (one tagged table) and their
    line items.
Architecture position: Kernel > Models.

Invariants enforced:
    - (kind, number) is unique (uq_document_kind_number).
    - subtotal/discount/tax/total are derived from the line items by the
      Posting Engine; callers never set them.
    - status moves draft -> posted -> cancelled, never backwards.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase, UUIDString
from books_kernel.domain.values import DocumentKind, DocumentStatus


class Document(TrackedBase):
    """
    A sale (invoice) or purchase document.

    ``kind`` is the discriminator.  The prefix of ``number`` carries no
    meaning for the kernel.
    """

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("kind", "number", name="uq_document_kind_number"),
        Index("idx_document_account_date", "account_id", "document_date"),
    )

    kind: Mapped[DocumentKind] = mapped_column(String(10), nullable=False)

    number: Mapped[str] = mapped_column(String(50), nullable=False)

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=True,
    )

    document_date: Mapped[date] = mapped_column(nullable=False)

    due_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[DocumentStatus] = mapped_column(
        String(20),
        default=DocumentStatus.DRAFT.value,
        nullable=False,
    )

    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    tax: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    payment_terms: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_posted(self) -> bool:
        return self.status == DocumentStatus.POSTED

    def __repr__(self) -> str:
        return f"<Document {self.kind} {self.number} ({self.status})>"


class LineItem(TrackedBase):
    __tablename__ = "line_items"
    __table_args__ = (
        UniqueConstraint("document_id", "line_no", name="uq_line_item_position"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id"),
        nullable=False,
    )

    # 1-based insertion order; posting processes lines in this order
    line_no: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    tax: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    total: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<LineItem #{self.line_no} {self.quantity} x {self.unit_price}>"
