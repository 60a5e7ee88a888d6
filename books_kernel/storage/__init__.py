"""Storage seam: repositories, units of work and the two backends."""

from books_kernel.storage.base import StorageBackend, UnitOfWork
from books_kernel.storage.factory import build_storage_backend
from books_kernel.storage.memory import MemoryStorageBackend
from books_kernel.storage.sql import SqlStorageBackend

__all__ = [
    "MemoryStorageBackend",
    "SqlStorageBackend",
    "StorageBackend",
    "UnitOfWork",
    "build_storage_backend",
]
