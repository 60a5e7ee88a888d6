"""
Tests for the InventoryStore through the facade.

Covers:
- Signed adjustments and the out-of-stock guard
- Stock counts (absolute adjustments)
- Transfers between warehouses
- The level always equals the sum of its movements
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from books_kernel.domain.settings import KernelSettings
from books_kernel.domain.values import MovementType
from books_kernel.exceptions import (
    InsufficientStockError,
    MovementNotFoundError,
    ProductNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from books_kernel.services.bookkeeping_service import BookkeepingService
from books_kernel.services.inventory_store import InventoryStore, lock_order


class TestAdjust:
    def test_untouched_pair_is_zero(self, books, product, warehouse):
        assert books.get_inventory_level(product.id, warehouse.id) == Decimal("0")

    def test_positive_then_negative(self, books, product, warehouse):
        assert books.adjust_inventory(product.id, warehouse.id, Decimal("10")) == Decimal("10")
        assert books.adjust_inventory(product.id, warehouse.id, Decimal("-3")) == Decimal("7")
        movements = books.list_movements(product_id=product.id)
        assert [m.signed_quantity for m in movements] == [Decimal("10"), Decimal("-3")]
        assert all(m.movement_type == MovementType.ADJUSTMENT.value for m in movements)

    def test_guard_blocks_negative_stock(self, books, stocked_product, warehouse):
        with pytest.raises(InsufficientStockError) as exc_info:
            books.adjust_inventory(stocked_product.id, warehouse.id, Decimal("-11"))
        assert exc_info.value.available == Decimal("10")
        assert exc_info.value.requested == Decimal("11")
        assert books.get_inventory_level(stocked_product.id, warehouse.id) == Decimal("10")

    def test_exact_depletion_allowed(self, books, stocked_product, warehouse):
        assert books.adjust_inventory(stocked_product.id, warehouse.id, Decimal("-10")) == Decimal("0")

    def test_zero_delta_rejected(self, books, product, warehouse):
        with pytest.raises(ValidationError):
            books.adjust_inventory(product.id, warehouse.id, Decimal("0"))

    def test_unknown_references(self, books, product, warehouse):
        with pytest.raises(ProductNotFoundError):
            books.adjust_inventory(uuid4(), warehouse.id, Decimal("1"))
        with pytest.raises(WarehouseNotFoundError):
            books.adjust_inventory(product.id, uuid4(), Decimal("1"))

    def test_negative_adjustments_when_configured(self, storage, deterministic_clock, product, warehouse):
        relaxed = BookkeepingService(
            storage,
            clock=deterministic_clock,
            settings=KernelSettings(allow_negative_adjustments=True),
        )
        assert relaxed.adjust_inventory(product.id, warehouse.id, Decimal("-2")) == Decimal("-2")


class TestStockCount:
    def test_absolute_records_difference(self, books, stocked_product, warehouse):
        assert books.adjust_inventory(
            stocked_product.id, warehouse.id, Decimal("7"), absolute=True
        ) == Decimal("7")
        movements = books.list_movements(product_id=stocked_product.id)
        assert movements[-1].signed_quantity == Decimal("-3")

    def test_matching_count_writes_nothing(self, books, stocked_product, warehouse):
        books.adjust_inventory(stocked_product.id, warehouse.id, Decimal("10"), absolute=True)
        assert len(books.list_movements(product_id=stocked_product.id)) == 1

    def test_negative_count_rejected(self, books, product, warehouse):
        with pytest.raises(ValidationError):
            books.adjust_inventory(product.id, warehouse.id, Decimal("-1"), absolute=True)


class TestTransfer:
    def test_moves_stock(self, books, stocked_product, warehouse):
        annex = books.create_warehouse("Annex")
        source, target = books.transfer_stock(stocked_product.id, warehouse.id, annex.id, Decimal("4"))
        assert (source, target) == (Decimal("6"), Decimal("4"))
        moves = books.list_movements(product_id=stocked_product.id, warehouse_id=annex.id)
        assert moves[0].movement_type == MovementType.TRANSFER.value

    def test_insufficient_source_moves_nothing(self, books, stocked_product, warehouse):
        annex = books.create_warehouse("Annex")
        with pytest.raises(InsufficientStockError):
            books.transfer_stock(stocked_product.id, warehouse.id, annex.id, Decimal("11"))
        assert books.get_inventory_level(stocked_product.id, warehouse.id) == Decimal("10")
        assert books.get_inventory_level(stocked_product.id, annex.id) == Decimal("0")

    def test_same_warehouse_rejected(self, books, stocked_product, warehouse):
        with pytest.raises(ValidationError):
            books.transfer_stock(stocked_product.id, warehouse.id, warehouse.id, Decimal("1"))


class TestLevelsAndMovements:
    def test_level_equals_sum_of_movements(self, storage, books, stocked_product, warehouse):
        books.adjust_inventory(stocked_product.id, warehouse.id, Decimal("-4"))
        books.adjust_inventory(stocked_product.id, warehouse.id, Decimal("2.5"))
        with storage.unit_of_work() as uow:
            replayed = InventoryStore(uow).recompute_level(stocked_product.id, warehouse.id)
        assert replayed == books.get_inventory_level(stocked_product.id, warehouse.id) == Decimal("8.5")

    def test_list_inventory_by_warehouse(self, books, stocked_product, warehouse):
        annex = books.create_warehouse("Annex")
        books.transfer_stock(stocked_product.id, warehouse.id, annex.id, Decimal("1"))
        assert len(books.list_inventory()) == 2
        (level,) = books.list_inventory(annex.id)
        assert level.quantity == Decimal("1")

    def test_reverse_unknown_movement(self, storage, books):
        with pytest.raises(MovementNotFoundError):
            with storage.unit_of_work() as uow:
                InventoryStore(uow).reverse_movement(uuid4())

    def test_reverse_manual_movement(self, storage, books, stocked_product, warehouse):
        (movement,) = books.list_movements(product_id=stocked_product.id)
        with storage.unit_of_work() as uow:
            assert InventoryStore(uow).reverse_movement(movement.id) == Decimal("0")
        assert books.list_movements(product_id=stocked_product.id) == []


class TestLockOrder:
    def test_sorted_and_distinct(self):
        a, b, w = uuid4(), uuid4(), uuid4()
        pairs = lock_order([(b, w), (a, w), (b, w)])
        assert pairs == sorted({(a, w), (b, w)}, key=lambda p: (str(p[0]), str(p[1])))
