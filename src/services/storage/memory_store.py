"""
In-Memory Storage Implementation

Used by tests and as a scratch store. Documents are deep-copied on the way
in and out so callers never share mutable state with the store.

Bulk operations build the new contents first and swap them in at the end,
so a failure part-way leaves the previous contents untouched.
"""

import copy
from typing import Any, Optional

from src.services.storage.interface import (
    DaybookStoreInterface,
    Document,
    StorageError,
    require_id,
)


class InMemoryDaybookStore(DaybookStoreInterface):
    """
    Dict-backed implementation of the record store.

    ``fail_on`` names operations (method names) that should raise a
    StorageError, to exercise callers' failure paths. ``fail_after_writes``
    makes the N+1-th document write of a bulk operation fail.
    """

    def __init__(
        self,
        fail_on: Optional[set[str]] = None,
        fail_after_writes: Optional[int] = None,
    ):
        self._records: dict[str, Document] = {}
        self._structure: Optional[Any] = None
        self._settings: dict[str, Any] = {}
        self._gas_logs: dict[str, Document] = {}
        self.fail_on: set[str] = set(fail_on or ())
        self.fail_after_writes = fail_after_writes

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StorageError(f"Simulated failure in {operation}")

    def _stage(self, documents: list[Document], kind: str) -> dict[str, Document]:
        staged: dict[str, Document] = {}
        for written, document in enumerate(documents):
            if self.fail_after_writes is not None and written >= self.fail_after_writes:
                raise StorageError(f"Simulated failure writing {kind} #{written + 1}")
            staged[require_id(document, kind)] = copy.deepcopy(document)
        return staged

    # --- Records ---

    async def get_all_records(self) -> list[Document]:
        self._check("get_all_records")
        return [copy.deepcopy(doc) for _, doc in sorted(self._records.items())]

    async def save_record(self, document: Document) -> None:
        self._check("save_record")
        self._records[require_id(document, "record")] = copy.deepcopy(document)

    async def put_records(self, documents: list[Document]) -> None:
        self._check("put_records")
        self._records.update(self._stage(documents, "record"))

    async def delete_record(self, record_id: str) -> bool:
        self._check("delete_record")
        return self._records.pop(record_id, None) is not None

    async def rekey_record(self, old_id: str, document: Document) -> None:
        self._check("rekey_record")
        new_id = require_id(document, "record")
        self._records.pop(old_id, None)
        self._records[new_id] = copy.deepcopy(document)

    async def bulk_replace_records(self, documents: list[Document]) -> None:
        self._check("bulk_replace_records")
        self._records = self._stage(documents, "record")

    # --- Structure ---

    async def get_structure(self) -> Optional[Any]:
        self._check("get_structure")
        return copy.deepcopy(self._structure)

    async def save_structure(self, document: Any) -> None:
        self._check("save_structure")
        self._structure = copy.deepcopy(document)

    # --- Settings ---

    async def get_setting(self, key: str) -> Optional[Any]:
        self._check("get_setting")
        return copy.deepcopy(self._settings.get(key))

    async def get_all_settings(self) -> dict[str, Any]:
        self._check("get_all_settings")
        return copy.deepcopy(self._settings)

    async def save_setting(self, key: str, value: Any) -> None:
        self._check("save_setting")
        self._settings[key] = copy.deepcopy(value)

    # --- Gas logs ---

    async def get_gas_logs(self) -> list[Document]:
        self._check("get_gas_logs")
        return [copy.deepcopy(doc) for _, doc in sorted(self._gas_logs.items())]

    async def save_gas_log(self, document: Document) -> None:
        self._check("save_gas_log")
        self._gas_logs[require_id(document, "gas log")] = copy.deepcopy(document)

    async def put_gas_logs(self, documents: list[Document]) -> None:
        self._check("put_gas_logs")
        self._gas_logs.update(self._stage(documents, "gas log"))

    async def delete_gas_log(self, log_id: str) -> bool:
        self._check("delete_gas_log")
        return self._gas_logs.pop(log_id, None) is not None

    async def bulk_replace_gas_logs(self, documents: list[Document]) -> None:
        self._check("bulk_replace_gas_logs")
        self._gas_logs = self._stage(documents, "gas log")

    # --- Restore ---

    async def replace_all(
        self,
        records: list[Document],
        structure: Any,
        gas_logs: Optional[list[Document]] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> None:
        self._check("replace_all")
        staged_records = self._stage(records, "record")
        staged_gas = self._stage(gas_logs, "gas log") if gas_logs is not None else None

        self._records = staged_records
        self._structure = copy.deepcopy(structure)
        if staged_gas is not None:
            self._gas_logs = staged_gas
        for key, value in (settings or {}).items():
            self._settings[key] = copy.deepcopy(value)
