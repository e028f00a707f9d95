"""Services package."""

from src.services.storage import (
    ConnectionError,
    CorruptStoreError,
    DaybookStoreInterface,
    InMemoryDaybookStore,
    SQLiteDaybookStore,
    StorageError,
)

__all__ = [
    # Storage services
    "ConnectionError",
    "CorruptStoreError",
    "DaybookStoreInterface",
    "InMemoryDaybookStore",
    "SQLiteDaybookStore",
    "StorageError",
]
