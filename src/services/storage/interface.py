"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the on-device SQLite file as the real backend
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The store is schema-less: it persists plain JSON documents and hands them
back exactly as stored. Typing happens after the migration engine has
brought a document up to the current shape.

Every operation is async and may fail with a StorageError. Callers must
propagate it; nothing in this layer swallows a failure.

Concurrent mutations of the same identifier are not locked against each
other: the write that completes last wins.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


Document = dict[str, Any]


class DaybookStoreInterface(ABC):
    """
    Abstract interface for the record store.

    Holds one document per calendar day, one expense structure document,
    the settings table and the gas log.
    """

    # --- Records ---

    @abstractmethod
    async def get_all_records(self) -> list[Document]:
        """
        Return every stored record document.

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def save_record(self, document: Document) -> None:
        """
        Insert or replace a record document keyed by its ``id``.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def put_records(self, documents: list[Document]) -> None:
        """
        Upsert many record documents in one transaction.

        Used to write migrated documents back.
        """
        pass

    @abstractmethod
    async def delete_record(self, record_id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def rekey_record(self, old_id: str, document: Document) -> None:
        """
        Move a record to a new id: delete ``old_id`` and insert ``document``
        as a single transaction, so no day is duplicated or orphaned.
        """
        pass

    @abstractmethod
    async def bulk_replace_records(self, documents: list[Document]) -> None:
        """
        Replace every record with ``documents``.

        All-or-nothing: if any insert fails the previous records remain.
        """
        pass

    # --- Expense structure ---

    @abstractmethod
    async def get_structure(self) -> Optional[Any]:
        """Return the stored structure document, or None if never saved."""
        pass

    @abstractmethod
    async def save_structure(self, document: Any) -> None:
        """Store the structure document."""
        pass

    # --- Settings ---

    @abstractmethod
    async def get_setting(self, key: str) -> Optional[Any]:
        """Return the stored value for ``key``, or None if absent."""
        pass

    @abstractmethod
    async def get_all_settings(self) -> dict[str, Any]:
        """Return the whole settings table."""
        pass

    @abstractmethod
    async def save_setting(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        pass

    # --- Gas logs ---

    @abstractmethod
    async def get_gas_logs(self) -> list[Document]:
        """Return every stored gas log document."""
        pass

    @abstractmethod
    async def save_gas_log(self, document: Document) -> None:
        """Insert or replace a gas log keyed by its ``id``."""
        pass

    @abstractmethod
    async def put_gas_logs(self, documents: list[Document]) -> None:
        """Upsert many gas log documents in one transaction."""
        pass

    @abstractmethod
    async def delete_gas_log(self, log_id: str) -> bool:
        """Delete a gas log by id. Returns False if none existed."""
        pass

    @abstractmethod
    async def bulk_replace_gas_logs(self, documents: list[Document]) -> None:
        """Replace every gas log with ``documents`` (all-or-nothing)."""
        pass

    # --- Restore ---

    @abstractmethod
    async def replace_all(
        self,
        records: list[Document],
        structure: Any,
        gas_logs: Optional[list[Document]] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Replace records and structure, and gas logs / settings when given,
        in a single transaction.

        Settings not named in ``settings`` are left untouched.
        """
        pass

    async def open(self) -> None:
        """Acquire whatever the store needs before first use."""
        return None

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not open the storage backend."""
    pass


class CorruptStoreError(StorageError):
    """A stored document could not be decoded."""
    pass


def require_id(document: Document, kind: str) -> str:
    """Return the document's ``id`` or fail if it has none."""
    doc_id = document.get("id") if isinstance(document, dict) else None
    if not isinstance(doc_id, str) or not doc_id:
        raise StorageError(f"Cannot store {kind} document without a string id")
    return doc_id
