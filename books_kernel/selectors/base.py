"""
Module: books_kernel.selectors.base
Responsibility: Abstract base class for read-only selectors.
Architecture position: Kernel > Selectors.  May import from domain/, models/
    and storage/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete or flush through the unit.
    - Selectors return frozen DTOs, not ORM instances.
    - The caller owns the unit of work, so a selector sees one consistent
      snapshot: either before or after any concurrent posting unit.
"""

from abc import ABC

from books_kernel.storage.base import UnitOfWork


class BaseSelector(ABC):
    def __init__(self, uow: UnitOfWork):
        self.uow = uow
