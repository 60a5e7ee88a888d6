"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor for every service: a UnitOfWork from the storage
    seam and a Clock.  Services flush through the unit's repositories and
    never commit or roll back; the unit of work owns the transaction
    boundary, which is what makes a multi-step posting atomic.
Architecture position:
    Kernel > Services.
"""

from abc import ABC

from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.storage.base import UnitOfWork


class BaseService(ABC):
    """
    Contract:
        Receives the caller's unit of work.  Never commits.

    Non-goals:
        - Does NOT provide read-model queries; those live in selectors/.
    """

    def __init__(self, uow: UnitOfWork, clock: Clock | None = None):
        self.uow = uow
        self.clock = clock or SystemClock()
