"""
Module: books_kernel.models.inventory
Responsibility: Stock levels per (product, warehouse) and the append-only
    movement history that explains them.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one InventoryLevel per (product_id, warehouse_id)
      (uq_inventory_level_pair); first-time creation is race-safe in
      InventoryStore.
    - InventoryLevel.quantity == sum of signed_quantity over the pair's
      movements.
    - quantity >= 0 unless a manual adjustment was explicitly allowed to
      go negative.
    - InventoryMovement rows are append-only (db/immutability.py).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase, UUIDString
from books_kernel.domain.values import DocumentType, MovementType


class InventoryLevel(TrackedBase):
    __tablename__ = "inventory_levels"
    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_level_pair"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    def __repr__(self) -> str:
        return f"<InventoryLevel {self.product_id}@{self.warehouse_id}: {self.quantity}>"


class InventoryMovement(TrackedBase):
    """One signed stock change; positive adds stock, negative removes it."""

    __tablename__ = "inventory_movements"
    __table_args__ = (
        Index("idx_movement_pair", "product_id", "warehouse_id"),
        Index("idx_movement_document", "document_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    signed_quantity: Mapped[Decimal] = mapped_column(nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(20), nullable=False)

    document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id"),
        nullable=True,
    )

    document_type: Mapped[DocumentType] = mapped_column(
        String(10),
        default=DocumentType.NONE.value,
        nullable=False,
    )

    movement_date: Mapped[date] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<InventoryMovement {self.movement_type} {self.signed_quantity}>"
