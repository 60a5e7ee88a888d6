"""
Tests for the integrity check and the immutability of history rows.

Stored balances and stock levels must always equal a replay of their
transactions and movements; movements and transactions are never edited
in place.
"""

from decimal import Decimal

import pytest

from books_kernel.domain.values import AccountType, TransactionKind
from books_kernel.exceptions import ImmutabilityViolationError
from books_kernel.services.bookkeeping_service import BookkeepingService


class TestVerifyIntegrity:
    def test_clean_books(self, books, customer, stocked_product, create_sale, create_purchase, make_line):
        sale = create_sale([make_line(stocked_product, 3, "9.99")])
        create_purchase([make_line(stocked_product, 2, "4.00")])
        books.record_transaction(customer.id, TransactionKind.CREDIT, Decimal("5"))
        books.delete_document(sale.id)
        assert books.verify_integrity() == []

    def test_tampered_balance_reported(self, storage, books, customer):
        books.record_transaction(customer.id, TransactionKind.DEBIT, Decimal("20"))
        with storage.unit_of_work() as uow:
            account = uow.accounts.get_for_update(customer.id)
            account.current_balance = Decimal("999")
            uow.flush()

        (issue,) = books.verify_integrity()
        assert issue.entity == "account"
        assert issue.entity_id == str(customer.id)
        assert issue.stored == Decimal("999")
        assert issue.replayed == Decimal("20")

    def test_tampered_level_reported(self, storage, books, warehouse, stocked_product):
        with storage.unit_of_work() as uow:
            level = uow.inventory.get_level_for_update(stocked_product.id, warehouse.id)
            level.quantity = Decimal("3")
            uow.flush()

        (issue,) = books.verify_integrity()
        assert issue.entity == "inventory_level"
        assert issue.replayed == Decimal("10")


class TestImmutability:
    @pytest.fixture
    def sql_books(self, sqlite_storage, deterministic_clock):
        return BookkeepingService(sqlite_storage, clock=deterministic_clock)

    def test_movement_cannot_be_edited(self, sqlite_storage, sql_books):
        product = sql_books.create_product("P-1", "Part")
        warehouse = sql_books.create_warehouse("Main")
        sql_books.adjust_inventory(product.id, warehouse.id, Decimal("5"))
        (movement,) = sql_books.list_movements(product_id=product.id)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with sqlite_storage.unit_of_work() as uow:
                row = uow.inventory.get_movement(movement.id)
                row.signed_quantity = Decimal("50")
                uow.flush()

        assert exc_info.value.entity_type == "InventoryMovement"
        assert sql_books.get_inventory_level(product.id, warehouse.id) == Decimal("5")

    def test_transaction_cannot_be_edited(self, sqlite_storage, sql_books):
        account = sql_books.create_account("Acme", AccountType.CUSTOMER)
        tx = sql_books.record_transaction(account.id, TransactionKind.DEBIT, Decimal("10"))

        with pytest.raises(ImmutabilityViolationError):
            with sqlite_storage.unit_of_work() as uow:
                row = uow.transactions.get(tx.id)
                row.amount = Decimal("1")
                uow.flush()

        assert sql_books.get_account_balance(account.id) == Decimal("10")
