"""Tests for document number allocation and uniqueness."""

from decimal import Decimal

import pytest

from books_kernel.domain.dtos import DocumentInput
from books_kernel.domain.settings import KernelSettings, NumberingPolicy
from books_kernel.domain.values import DocumentKind, DocumentStatus
from books_kernel.exceptions import DuplicateDocumentNumberError, InsufficientStockError
from books_kernel.services.bookkeeping_service import BookkeepingService


class TestAutomaticNumbers:
    def test_sequential_per_kind(self, stocked_product, create_sale, create_purchase, make_line):
        first = create_sale([make_line(stocked_product, 1, "1")])
        second = create_sale([make_line(stocked_product, 1, "1")])
        purchase = create_purchase([make_line(stocked_product, 1, "1")])
        assert (first.number, second.number) == ("INV-00001", "INV-00002")
        assert purchase.number == "PUR-00001"

    def test_rejected_document_consumes_no_number(self, product, create_sale, make_line):
        with pytest.raises(InsufficientStockError):
            create_sale([make_line(product, 1, "1")])
        draft = create_sale([make_line(product, 1, "1")], status=DocumentStatus.DRAFT)
        assert draft.number == "INV-00001"

    def test_skips_hand_entered_numbers(self, stocked_product, create_sale, make_line):
        create_sale([make_line(stocked_product, 1, "1")], number="INV-00001")
        auto = create_sale([make_line(stocked_product, 1, "1")])
        assert auto.number == "INV-00002"

    def test_configured_policy(self, storage, deterministic_clock, customer, warehouse, stocked_product, make_line):
        books = BookkeepingService(
            storage,
            clock=deterministic_clock,
            settings=KernelSettings(numbering=NumberingPolicy(sale_prefix="S-", padding=3)),
        )
        sale = books.create_document(
            DocumentInput(kind=DocumentKind.SALE, account_id=customer.id, warehouse_id=warehouse.id),
            [make_line(stocked_product, 1, "1")],
        )
        assert sale.number == "S-001"


class TestManualNumbers:
    def test_duplicate_within_kind_rejected(self, books, warehouse, stocked_product, create_sale, make_line):
        create_sale([make_line(stocked_product, 1, "1")], number="A-1")
        with pytest.raises(DuplicateDocumentNumberError) as exc_info:
            create_sale([make_line(stocked_product, 1, "1")], number="A-1")
        assert exc_info.value.number == "A-1"
        assert books.get_inventory_level(stocked_product.id, warehouse.id) == Decimal("9")

    def test_same_number_across_kinds_allowed(self, stocked_product, create_sale, create_purchase, make_line):
        sale = create_sale([make_line(stocked_product, 1, "1")], number="X-1")
        purchase = create_purchase([make_line(stocked_product, 1, "1")], number="X-1")
        assert sale.number == purchase.number == "X-1"

    def test_whitespace_trimmed(self, stocked_product, create_sale, make_line):
        sale = create_sale([make_line(stocked_product, 1, "1")], number="  B-7 ")
        assert sale.number == "B-7"
