"""Tests for line and document total computation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from books_kernel.domain.dtos import LineItemInput
from books_kernel.domain.totals import compute_document_totals, line_totals
from books_kernel.exceptions import InvalidLineItemError, ValidationError


def _line(quantity, unit_price, discount="0", tax="0", product_id=None):
    return LineItemInput(
        product_id=product_id or uuid4(),
        quantity=None if quantity is None else Decimal(quantity),
        unit_price=None if unit_price is None else Decimal(unit_price),
        discount=Decimal(discount),
        tax=Decimal(tax),
    )


class TestLineTotals:
    def test_total_is_gross_minus_discount_plus_tax(self):
        totals = line_totals(Decimal("3"), Decimal("9.99"), Decimal("2.00"), Decimal("1.50"))
        assert totals.gross == Decimal("29.97")
        assert totals.total == Decimal("29.47")

    def test_gross_rounds_half_up(self):
        assert line_totals(Decimal("1"), Decimal("0.005")).gross == Decimal("0.01")

    def test_decimal_places_respected(self):
        assert line_totals(Decimal("1"), Decimal("1.23456"), decimal_places=3).gross == Decimal("1.235")


class TestDocumentTotals:
    def test_sums_lines(self):
        totals = compute_document_totals(
            [_line("2", "50.00", discount="5", tax="10"), _line("1", "20.00")]
        )
        assert totals.subtotal == Decimal("120.00")
        assert totals.discount == Decimal("5.00")
        assert totals.tax == Decimal("10.00")
        assert totals.total == Decimal("125.00")
        assert len(totals.lines) == 2

    def test_no_lines_is_zero(self):
        totals = compute_document_totals([])
        assert totals.total == Decimal("0")


class TestLineValidation:
    @pytest.mark.parametrize(
        "line, field",
        [
            (_line("0", "1"), "quantity"),
            (_line("-1", "1"), "quantity"),
            (_line("1", "-0.01"), "unit_price"),
            (_line("1", "1", discount="-1"), "discount"),
            (_line("1", "10.00", discount="50.00"), "discount"),
            (_line("3", "2.00", discount="6.01", tax="10"), "discount"),
            (_line("1", "1", tax="-1"), "tax"),
            (_line(None, "1"), "quantity"),
            (_line("1", None), "unit_price"),
        ],
    )
    def test_invalid_line_rejected(self, line, field):
        with pytest.raises(InvalidLineItemError) as exc_info:
            compute_document_totals([line])
        assert exc_info.value.field == field
        assert exc_info.value.line_no == 1

    def test_missing_product_rejected(self):
        line = LineItemInput(product_id=None, quantity=Decimal("1"), unit_price=Decimal("1"))
        with pytest.raises(InvalidLineItemError):
            compute_document_totals([line])

    def test_reports_offending_position(self):
        with pytest.raises(InvalidLineItemError) as exc_info:
            compute_document_totals([_line("1", "1"), _line("1", "1"), _line("0", "1")])
        assert exc_info.value.line_no == 3

    def test_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            compute_document_totals([_line("0", "1")])

    def test_zero_price_allowed(self):
        assert compute_document_totals([_line("1", "0")]).total == Decimal("0.00")

    def test_discount_equal_to_gross_allowed(self):
        totals = compute_document_totals([_line("3", "2.00", discount="6.00", tax="0.50")])
        assert totals.total == Decimal("0.50")
