"""
Storage Services Package

Provides the abstract store interface and its implementations.
SQLite is the on-device backend; the in-memory store backs the tests.
"""

from src.services.storage.interface import (
    ConnectionError,
    CorruptStoreError,
    DaybookStoreInterface,
    Document,
    StorageError,
)
from src.services.storage.memory_store import InMemoryDaybookStore
from src.services.storage.sqlite_store import SQLiteDaybookStore

__all__ = [
    # Interface
    "DaybookStoreInterface",
    "Document",
    # Exceptions
    "ConnectionError",
    "CorruptStoreError",
    "StorageError",
    # Implementations
    "InMemoryDaybookStore",
    "SQLiteDaybookStore",
]
