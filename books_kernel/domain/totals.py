"""
Document totals -- pure computation from line items.

Line policy: total = quantity x unit_price - discount + tax.
Document:    subtotal = sum(quantity x unit_price), discount = sum(line discount),
             tax = sum(line tax), total = subtotal - discount + tax.

Validation lives here as well so that a bad line is rejected before the
Posting Engine touches storage.
"""

from collections.abc import Sequence
from decimal import Decimal

from books_kernel.domain.dtos import DocumentTotals, LineItemInput, LineTotals
from books_kernel.domain.values import MONEY_DECIMAL_PLACES, ZERO, round_money, to_decimal
from books_kernel.exceptions import InvalidLineItemError


def validate_line(line_no: int, line: LineItemInput) -> None:
    """
    Raises:
        InvalidLineItemError: missing product, quantity <= 0, price < 0,
            negative discount or tax, or a discount above the gross amount.
    """
    if line.product_id is None:
        raise InvalidLineItemError(line_no, "product_id", "is required")
    if line.quantity is None:
        raise InvalidLineItemError(line_no, "quantity", "is required")
    if line.unit_price is None:
        raise InvalidLineItemError(line_no, "unit_price", "is required")
    if to_decimal(line.quantity) <= ZERO:
        raise InvalidLineItemError(line_no, "quantity", "must be greater than zero")
    if to_decimal(line.unit_price) < ZERO:
        raise InvalidLineItemError(line_no, "unit_price", "must not be negative")
    if to_decimal(line.discount) < ZERO:
        raise InvalidLineItemError(line_no, "discount", "must not be negative")
    if to_decimal(line.discount) > to_decimal(line.quantity) * to_decimal(line.unit_price):
        raise InvalidLineItemError(line_no, "discount", "must not exceed quantity x unit_price")
    if to_decimal(line.tax) < ZERO:
        raise InvalidLineItemError(line_no, "tax", "must not be negative")


def line_totals(
    quantity: Decimal,
    unit_price: Decimal,
    discount: Decimal = ZERO,
    tax: Decimal = ZERO,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> LineTotals:
    gross = round_money(to_decimal(quantity) * to_decimal(unit_price), decimal_places)
    discount = round_money(to_decimal(discount), decimal_places)
    tax = round_money(to_decimal(tax), decimal_places)
    return LineTotals(gross=gross, discount=discount, tax=tax, total=gross - discount + tax)


def compute_document_totals(
    lines: Sequence[LineItemInput],
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> DocumentTotals:
    """Validate every line and sum the document totals in line order."""
    computed = []
    for line_no, line in enumerate(lines, start=1):
        validate_line(line_no, line)
        computed.append(
            line_totals(line.quantity, line.unit_price, line.discount, line.tax, decimal_places)
        )

    subtotal = sum((c.gross for c in computed), ZERO)
    discount = sum((c.discount for c in computed), ZERO)
    tax = sum((c.tax for c in computed), ZERO)
    return DocumentTotals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=subtotal - discount + tax,
        lines=tuple(computed),
    )
