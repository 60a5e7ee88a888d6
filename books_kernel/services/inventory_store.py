"""
InventoryStore -- stock levels with an out-of-stock guard.

Responsibility:
    Every stock change goes through ``adjust`` (or ``reverse_movement``):
    lock the (product, warehouse) level, check the guard, append an
    InventoryMovement, update the level.  The level therefore always equals
    the sum of its movements.
Architecture position:
    Kernel > Services.  Called by the Posting Engine and by the facade for
    manual adjustments, stock counts and transfers.

Invariants enforced:
    - A negative delta that would leave the level below zero raises
      InsufficientStockError.  ``allow_negative`` relaxes this for manual
      adjustments only, and only when configured.
    - Levels are locked in (product_id, warehouse_id) order by
      ``lock_levels`` before multi-row work.
    - First-time level creation is race-safe (see InventoryRepository).

Failure modes:
    - InsufficientStockError / StockReversalConflictError: guard tripped.
    - ProductNotFoundError / WarehouseNotFoundError: unknown references.
    - MovementNotFoundError: reversing a movement that does not exist.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from books_kernel.domain.values import ZERO, DocumentType, MovementType, to_decimal
from books_kernel.exceptions import (
    InsufficientStockError,
    MovementNotFoundError,
    ProductNotFoundError,
    StockReversalConflictError,
    ValidationError,
    WarehouseNotFoundError,
)
from books_kernel.logging_config import get_logger
from books_kernel.models import InventoryLevel, InventoryMovement, Product, Warehouse
from books_kernel.services.base import BaseService
from books_kernel.storage.base import MOVEMENT_SEQUENCE

logger = get_logger("services.inventory")


def lock_order(pairs: Iterable[tuple[UUID, UUID]]) -> list[tuple[UUID, UUID]]:
    """Distinct (product_id, warehouse_id) pairs in the global lock order."""
    return sorted(set(pairs), key=lambda pair: (str(pair[0]), str(pair[1])))


class InventoryStore(BaseService):
    def __init__(self, uow, clock=None, allow_negative_adjustments: bool = False):
        super().__init__(uow, clock)
        self.allow_negative_adjustments = allow_negative_adjustments

    # -- lookups -----------------------------------------------------------

    def require_product(self, product_id: UUID) -> Product:
        product = self.uow.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def require_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.uow.catalog.get_warehouse(warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def get_level(self, product_id: UUID, warehouse_id: UUID) -> Decimal:
        """Current quantity, zero when the pair has never moved."""
        level = self.uow.inventory.get_level(product_id, warehouse_id)
        return to_decimal(level.quantity) if level is not None else ZERO

    def lock_levels(self, pairs: Iterable[tuple[UUID, UUID]]) -> list[InventoryLevel]:
        """Lock the existing levels of ``pairs`` in the global order."""
        locked = []
        for product_id, warehouse_id in lock_order(pairs):
            level = self.uow.inventory.get_level_for_update(product_id, warehouse_id)
            if level is not None:
                locked.append(level)
        return locked

    def _locked_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel:
        level = self.uow.inventory.get_level_for_update(product_id, warehouse_id)
        if level is None:
            level = self.uow.inventory.create_level(product_id, warehouse_id)
        return level

    # -- mutations ---------------------------------------------------------

    def _append(
        self,
        level: InventoryLevel,
        delta: Decimal,
        movement_type: MovementType,
        movement_date: date,
        document_id: UUID | None,
        document_type: DocumentType,
        notes: str | None,
    ) -> InventoryMovement:
        movement = InventoryMovement(
            product_id=level.product_id,
            warehouse_id=level.warehouse_id,
            signed_quantity=delta,
            movement_type=MovementType(movement_type).value,
            document_id=document_id,
            document_type=DocumentType(document_type or DocumentType.NONE).value,
            movement_date=movement_date,
            notes=notes,
            seq=self.uow.sequences.next_value(MOVEMENT_SEQUENCE),
        )
        self.uow.inventory.add_movement(movement)
        level.quantity = to_decimal(level.quantity) + delta
        self.uow.flush()
        return movement

    def adjust(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        signed_delta: Decimal,
        movement_type: MovementType = MovementType.ADJUSTMENT,
        *,
        movement_date: date | None = None,
        document_id: UUID | None = None,
        document_type: DocumentType = DocumentType.NONE,
        notes: str | None = None,
        allow_negative: bool = False,
    ) -> Decimal:
        """
        Apply a signed stock change and record its movement.

        Returns:
            The new quantity of the pair.

        Raises:
            ValidationError: zero delta.
            InsufficientStockError: the level would drop below zero.
        """
        delta = to_decimal(signed_delta)
        if delta == ZERO:
            raise ValidationError("Stock change must not be zero", field="quantity")
        self.require_product(product_id)
        self.require_warehouse(warehouse_id)

        level = self._locked_level(product_id, warehouse_id)
        available = to_decimal(level.quantity)
        if delta < ZERO and available + delta < ZERO and not allow_negative:
            logger.info(
                "insufficient_stock",
                extra={
                    "product_id": product_id,
                    "warehouse_id": warehouse_id,
                    "available": available,
                    "requested": -delta,
                },
            )
            raise InsufficientStockError(str(product_id), str(warehouse_id), available, -delta)

        movement = self._append(
            level,
            delta,
            movement_type,
            movement_date or self.clock.today(),
            document_id,
            document_type,
            notes,
        )
        logger.info(
            "inventory_adjusted",
            extra={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "delta": delta,
                "quantity": level.quantity,
                "movement_id": movement.id,
                "movement_type": movement.movement_type,
            },
        )
        return to_decimal(level.quantity)

    def manual_adjust(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        signed_delta: Decimal,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> Decimal:
        """Operator correction; the only path the negative-stock flag applies to."""
        return self.adjust(
            product_id,
            warehouse_id,
            signed_delta,
            MovementType.ADJUSTMENT,
            movement_date=movement_date,
            notes=notes,
            allow_negative=self.allow_negative_adjustments,
        )

    def set_level(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        quantity: Decimal,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> Decimal:
        """
        Stock count: record an adjustment for the difference to ``quantity``.

        No movement is written when the count matches the level.
        """
        target = to_decimal(quantity)
        if target < ZERO:
            raise ValidationError("Counted quantity must not be negative", field="quantity")
        self.require_product(product_id)
        self.require_warehouse(warehouse_id)

        level = self._locked_level(product_id, warehouse_id)
        diff = target - to_decimal(level.quantity)
        if diff == ZERO:
            return target
        return self.adjust(
            product_id,
            warehouse_id,
            diff,
            MovementType.ADJUSTMENT,
            movement_date=movement_date,
            notes=notes or "stock count",
        )

    def transfer(
        self,
        product_id: UUID,
        source_warehouse_id: UUID,
        target_warehouse_id: UUID,
        quantity: Decimal,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> tuple[Decimal, Decimal]:
        """
        Move stock between warehouses as two transfer movements.

        Returns:
            (source quantity, target quantity) after the transfer.
        """
        amount = to_decimal(quantity)
        if amount <= ZERO:
            raise ValidationError("Transfer quantity must be greater than zero", field="quantity")
        if source_warehouse_id == target_warehouse_id:
            raise ValidationError(
                "Source and target warehouse must differ", field="target_warehouse_id"
            )
        self.require_warehouse(source_warehouse_id)
        self.require_warehouse(target_warehouse_id)

        self.lock_levels(
            [(product_id, source_warehouse_id), (product_id, target_warehouse_id)]
        )
        source_qty = self.adjust(
            product_id,
            source_warehouse_id,
            -amount,
            MovementType.TRANSFER,
            movement_date=movement_date,
            notes=notes,
        )
        target_qty = self.adjust(
            product_id,
            target_warehouse_id,
            amount,
            MovementType.TRANSFER,
            movement_date=movement_date,
            notes=notes,
        )
        return source_qty, target_qty

    def reverse_movement(self, movement_id: UUID) -> Decimal:
        """
        Undo one movement: apply its inverse under the guard, then remove it.

        Raises:
            MovementNotFoundError: unknown movement.
            StockReversalConflictError: a document movement whose stock has
                since been consumed.
            InsufficientStockError: the same for a manual movement.
        """
        movement = self.uow.inventory.get_movement(movement_id)
        if movement is None:
            raise MovementNotFoundError(str(movement_id))

        level = self._locked_level(movement.product_id, movement.warehouse_id)
        available = to_decimal(level.quantity)
        inverse = -to_decimal(movement.signed_quantity)
        if available + inverse < ZERO:
            if movement.document_id is not None:
                raise StockReversalConflictError(
                    str(movement.document_id),
                    str(movement.product_id),
                    str(movement.warehouse_id),
                    available,
                    -inverse,
                )
            raise InsufficientStockError(
                str(movement.product_id), str(movement.warehouse_id), available, -inverse
            )

        level.quantity = available + inverse
        self.uow.inventory.delete_movement(movement)
        self.uow.flush()
        logger.info(
            "movement_reversed",
            extra={
                "movement_id": movement.id,
                "product_id": movement.product_id,
                "warehouse_id": movement.warehouse_id,
                "delta": inverse,
                "quantity": level.quantity,
                "document_id": movement.document_id,
            },
        )
        return to_decimal(level.quantity)

    def recompute_level(self, product_id: UUID, warehouse_id: UUID) -> Decimal:
        """Sum of the pair's movements."""
        return sum(
            (
                to_decimal(m.signed_quantity)
                for m in self.uow.inventory.list_movements(
                    product_id=product_id, warehouse_id=warehouse_id
                )
            ),
            ZERO,
        )

    def list_levels(self, warehouse_id: UUID | None = None) -> list[InventoryLevel]:
        return self.uow.inventory.list_levels(warehouse_id=warehouse_id)

    def list_movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> list[InventoryMovement]:
        return self.uow.inventory.list_movements(
            product_id=product_id, warehouse_id=warehouse_id, document_id=document_id
        )
