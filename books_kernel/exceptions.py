"""
Typed Exception Hierarchy for the bookkeeping kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a CLI, a retry loop) must react to failures by TYPE,
never by parsing messages.  Every exception therefore has:
  1. A class that can be caught on its own or through its category.
  2. A ``code`` class attribute (machine-readable, API-safe).
  3. Structured attributes carrying the context (ids, quantities, amounts).

Example:
    try:
        service.create_document(draft, lines)
    except InsufficientStockError as e:
        api_response(code=e.code, product=e.product_id, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BookkeepingError (base)
    |
    +-- ValidationError                 (nothing was persisted)
    |   +-- MissingPostingTargetError
    |   +-- InvalidLineItemError
    |   +-- InvalidAmountError
    |   +-- AccountTypeMismatchError
    |   +-- AccountInactiveError
    |   +-- DuplicateDocumentNumberError
    |   +-- DocumentStateError
    |   +-- DocumentLinkedTransactionError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- ProductNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- MovementNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- ConflictError
    |   +-- AlreadyPostedError
    |   +-- ConcurrencyConflictError     (transient -- safe to retry)
    |   +-- StockReversalConflictError   (also an InsufficientStockError)
    |
    +-- PersistenceError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|------------------------------------
Validation   | MISSING_POSTING_TARGET       | Posted document without account/warehouse
             | INVALID_LINE_ITEM            | Line missing product/quantity/price
             | INVALID_AMOUNT               | Transaction amount <= 0
             | ACCOUNT_TYPE_MISMATCH        | Sale on supplier / purchase on customer
             | ACCOUNT_INACTIVE             | Posting against a deactivated account
             | DUPLICATE_DOCUMENT_NUMBER    | Number already used for that kind
             | DOCUMENT_STATE               | Illegal status transition
             | DOCUMENT_LINKED_TRANSACTION  | Deleting a document-owned transaction
-------------|------------------------------|------------------------------------
Not found    | ACCOUNT_NOT_FOUND ...        | Referenced row absent
-------------|------------------------------|------------------------------------
Stock        | INSUFFICIENT_STOCK           | Level would go negative
-------------|------------------------------|------------------------------------
Conflict     | ALREADY_POSTED               | Re-posting a posted document
             | CONCURRENCY_CONFLICT         | Deadlock / serialization / lock timeout
             | STOCK_REVERSAL_CONFLICT      | Reversing a purchase whose stock was sold
-------------|------------------------------|------------------------------------
Persistence  | PERSISTENCE_ERROR            | Any other store failure
Immutability | IMMUTABILITY_VIOLATION       | Updating a movement or transaction row

All engine-level errors are all-or-nothing: by the time a caller sees one,
the unit of work has been rolled back.
"""

from decimal import Decimal


class BookkeepingError(Exception):
    """
    Base exception for all bookkeeping kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BOOKKEEPING_ERROR"


# Validation errors


class ValidationError(BookkeepingError):
    """Input rejected before any mutation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MissingPostingTargetError(ValidationError):
    """A document marked posted lacks its account or warehouse."""

    code: str = "MISSING_POSTING_TARGET"

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            f"Posted document requires {', '.join(self.missing)}",
            field=self.missing[0] if self.missing else None,
        )


class InvalidLineItemError(ValidationError):
    """A line item is missing a product, quantity or price, or has a bad value."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, line_no: int, field: str, reason: str):
        self.line_no = line_no
        self.reason = reason
        super().__init__(f"Line {line_no}: {field} {reason}", field=field)


class InvalidAmountError(ValidationError):
    """Transaction amount must be strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal | None):
        self.amount = amount
        super().__init__(f"Amount must be greater than zero, got {amount}", field="amount")


class AccountTypeMismatchError(ValidationError):
    """Document kind cannot be posted against this type of account."""

    code: str = "ACCOUNT_TYPE_MISMATCH"

    def __init__(self, account_id: str, account_type: str, document_kind: str):
        self.account_id = account_id
        self.account_type = account_type
        self.document_kind = document_kind
        super().__init__(
            f"Cannot post a {document_kind} document against "
            f"{account_type} account {account_id}",
            field="account_id",
        )


class AccountInactiveError(ValidationError):
    """Account is deactivated and cannot receive new postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is inactive", field="account_id")


class DuplicateDocumentNumberError(ValidationError):
    """Document number already used for this document kind."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, kind: str, number: str):
        self.kind = kind
        self.number = number
        super().__init__(f"{kind} document number {number} already exists", field="number")


class DocumentStateError(ValidationError):
    """Requested operation is not allowed in the document's current status."""

    code: str = "DOCUMENT_STATE"

    def __init__(self, document_id: str, status: str, operation: str):
        self.document_id = document_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} document {document_id} in status {status}",
            field="status",
        )


class DocumentLinkedTransactionError(ValidationError):
    """Transaction belongs to a document and can only be removed with it."""

    code: str = "DOCUMENT_LINKED_TRANSACTION"

    def __init__(self, transaction_id: str, document_id: str):
        self.transaction_id = transaction_id
        self.document_id = document_id
        super().__init__(
            f"Transaction {transaction_id} belongs to document {document_id}; "
            "delete or cancel the document instead",
        )


# Not-found errors


class NotFoundError(BookkeepingError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity: str = "account"


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"
    entity: str = "product"


class WarehouseNotFoundError(NotFoundError):
    code: str = "WAREHOUSE_NOT_FOUND"
    entity: str = "warehouse"


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"
    entity: str = "document"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity: str = "transaction"


class MovementNotFoundError(NotFoundError):
    code: str = "MOVEMENT_NOT_FOUND"
    entity: str = "movement"


# Stock errors


class InsufficientStockError(BookkeepingError):
    """An outgoing movement would drive the stock level below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        warehouse_id: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id} in warehouse "
            f"{warehouse_id}: available {available}, requested {requested}"
        )


# Conflict errors


class ConflictError(BookkeepingError):
    """The operation conflicts with the current state of shared rows."""

    code: str = "CONFLICT"


class AlreadyPostedError(ConflictError):
    """Posting is not idempotent: a posted document cannot be posted again."""

    code: str = "ALREADY_POSTED"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document already posted: {document_id}")


class ConcurrencyConflictError(ConflictError):
    """
    A concurrent unit of work won the race for a locked row.

    Raised for deadlocks, serialization failures and lock timeouts.  The
    unit was rolled back in full and may be retried as-is.
    """

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Concurrent modification detected: {detail}")


class StockReversalConflictError(ConflictError, InsufficientStockError):
    """
    Reversing a document would leave stock negative.

    Typical cause: the goods of a purchase were sold after it was posted.
    Catchable both as a ConflictError and as an InsufficientStockError.
    """

    code: str = "STOCK_REVERSAL_CONFLICT"

    def __init__(
        self,
        document_id: str,
        product_id: str,
        warehouse_id: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.document_id = document_id
        InsufficientStockError.__init__(
            self, product_id, warehouse_id, available, requested
        )
        self.args = (
            f"Cannot reverse document {document_id}: product {product_id} in "
            f"warehouse {warehouse_id} has {available}, reversal needs {requested}",
        )


# Persistence errors


class PersistenceError(BookkeepingError):
    """The underlying store failed."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class ImmutabilityViolationError(BookkeepingError):
    """
    Attempted to modify an immutable audit record.

    Inventory movements and financial transactions are append-only: they may
    be removed by a reversal, never edited in place.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
