"""Tests for the facade's retry of transient concurrency conflicts."""

from contextlib import contextmanager
from decimal import Decimal

import pytest

from books_kernel.domain.settings import KernelSettings
from books_kernel.domain.values import AccountType
from books_kernel.exceptions import ConcurrencyConflictError, ValidationError
from books_kernel.services.bookkeeping_service import BookkeepingService
from books_kernel.storage.base import StorageBackend
from books_kernel.storage.memory import MemoryStorageBackend


class FlakyStorage(StorageBackend):
    """Memory storage whose first ``failures`` units end in a conflict."""

    name = "flaky"

    def __init__(self, failures: int):
        self.inner = MemoryStorageBackend()
        self.failures = failures
        self.attempts = 0

    @contextmanager
    def unit_of_work(self):
        self.attempts += 1
        with self.inner.unit_of_work() as uow:
            yield uow
            if self.attempts <= self.failures:
                raise ConcurrencyConflictError("deadlock detected")

    def create_schema(self):
        pass

    def dispose(self):
        self.inner.dispose()


def _books(storage, retries=3):
    return BookkeepingService(
        storage, settings=KernelSettings(max_conflict_retries=retries), retry_backoff=0
    )


class TestConflictRetry:
    def test_retried_until_success(self, captured_logs):
        storage = FlakyStorage(failures=2)
        account = _books(storage).create_account("Acme", AccountType.CUSTOMER)

        assert storage.attempts == 3
        # Only the successful attempt was committed
        assert len(storage.inner._state.accounts) == 1
        assert account.id in storage.inner._state.accounts
        retries = [r for r in captured_logs() if r["message"] == "concurrency_conflict_retry"]
        assert [r["attempt"] for r in retries] == [1, 2]

    def test_gives_up_after_configured_retries(self):
        storage = FlakyStorage(failures=10)
        with pytest.raises(ConcurrencyConflictError):
            _books(storage, retries=2).create_account("Acme", AccountType.CUSTOMER)
        assert storage.attempts == 3
        assert storage.inner._state.accounts == {}

    def test_zero_retries(self):
        storage = FlakyStorage(failures=1)
        with pytest.raises(ConcurrencyConflictError):
            _books(storage, retries=0).create_account("Acme", AccountType.CUSTOMER)
        assert storage.attempts == 1

    def test_other_errors_not_retried(self):
        storage = FlakyStorage(failures=0)
        with pytest.raises(ValidationError):
            _books(storage).create_account("", AccountType.CUSTOMER)
        assert storage.attempts == 1

    def test_correlation_id_stable_across_attempts(self, captured_logs):
        storage = FlakyStorage(failures=1)
        _books(storage).create_account("Acme", AccountType.CUSTOMER, Decimal("1"))
        created = [r for r in captured_logs() if r["message"] == "account_created"]
        assert len(created) == 2
        assert created[0]["correlation_id"] == created[1]["correlation_id"]
        assert created[0]["unit_id"] != created[1]["unit_id"]
