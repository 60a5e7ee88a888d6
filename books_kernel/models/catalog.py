"""Products and warehouses referenced by line items and stock levels."""

from decimal import Decimal

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase


class Product(TrackedBase):
    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("code", name="uq_product_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    unit: Mapped[str] = mapped_column(String(20), default="unit", nullable=False)

    cost_price: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    sell_price: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    # Reorder threshold; informational only
    min_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Product {self.code}: {self.name}>"


class Warehouse(TrackedBase):
    __tablename__ = "warehouses"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    location: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Warehouse {self.name}>"
