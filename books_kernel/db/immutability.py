"""
ORM-level immutability enforcement for audit rows.

===============================================================================
WHY THIS EXISTS
===============================================================================

Inventory movements and financial transactions are the history from which
stock levels and account balances are replayed.  Editing one in place would
silently change a replayed balance without touching the stored one, so both
are append-only: a reversal removes a row and compensates the running
total, it never rewrites the row.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if the check passes)

Deletes are allowed: they are how Reversal removes a document's effects.

The in-memory backend never flushes; its repositories expose no update path
for these two entities, which gives the same guarantee.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable          | Mutable fields
---------------------|-------------------------|------------------------------
InventoryMovement    | ALWAYS (from creation)  | none
FinancialTransaction | ALWAYS (from creation)  | updated_at (row metadata)
"""

from sqlalchemy import event, inspect

from books_kernel.exceptions import ImmutabilityViolationError
from books_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_METADATA_FIELDS = frozenset({"updated_at"})


def _changed_fields(target) -> list[str]:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if attr.key in _METADATA_FIELDS:
            continue
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _block(entity_type: str, target, fields: list[str]) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "fields": fields,
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} rows are append-only (attempted to change {', '.join(fields)})",
    )


def _check_movement_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block("InventoryMovement", target, changed)


def _check_transaction_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block("FinancialTransaction", target, changed)


def register_immutability_listeners() -> None:
    """
    Register the before_update listeners.  Idempotent.

    Called by the SQL storage backend on construction.
    """
    from books_kernel.models.account import FinancialTransaction
    from books_kernel.models.inventory import InventoryMovement

    if not event.contains(InventoryMovement, "before_update", _check_movement_immutability):
        event.listen(InventoryMovement, "before_update", _check_movement_immutability)
    if not event.contains(
        FinancialTransaction, "before_update", _check_transaction_immutability
    ):
        event.listen(FinancialTransaction, "before_update", _check_transaction_immutability)

