"""Select the storage backend once, at process start."""

from books_kernel.logging_config import get_logger
from books_kernel.storage.base import StorageBackend
from books_kernel.storage.memory import MemoryStorageBackend
from books_kernel.storage.sql import SqlStorageBackend

logger = get_logger("storage.factory")

BACKENDS = ("memory", "sql")


def build_storage_backend(
    backend: str,
    database_url: str | None = None,
    echo: bool = False,
    create_schema: bool = False,
    **engine_options,
) -> StorageBackend:
    """
    Build the configured backend.

    Raises:
        ValueError: unknown backend name, or ``sql`` without a database URL.
    """
    if backend == "memory":
        storage: StorageBackend = MemoryStorageBackend()
    elif backend == "sql":
        if not database_url:
            raise ValueError("storage backend 'sql' requires a database_url")
        storage = SqlStorageBackend(database_url, echo=echo, **engine_options)
    else:
        raise ValueError(f"Unknown storage backend {backend!r}; expected one of {BACKENDS}")

    if create_schema:
        storage.create_schema()
    logger.info("storage_backend_selected", extra={"backend": storage.name})
    return storage
