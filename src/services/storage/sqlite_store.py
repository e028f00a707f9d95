"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the on-device backend:
1. Single file in the user's data directory, works fully offline
2. Real transactions, so restore and re-dating are atomic
3. Documents are stored as JSON text, keeping the store schema-less

Blocking sqlite3 calls run in a worker thread (asyncio.to_thread) and are
serialized by a lock on the single connection. The order in which calls
acquire that lock is the order in which they complete, which is what
last-write-wins is defined by.

Transient "database is locked/busy" errors are retried with tenacity.
Every other sqlite error surfaces as StorageError.
"""

import asyncio
import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

import structlog
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.services.storage.interface import (
    ConnectionError,
    CorruptStoreError,
    DaybookStoreInterface,
    Document,
    StorageError,
    require_id,
)


T = TypeVar("T")

STRUCTURE_KEY = "main"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS records (
  id TEXT PRIMARY KEY,
  document TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS structure (
  id TEXT PRIMARY KEY,
  document TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS settings (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS gas_logs (
  id TEXT PRIMARY KEY,
  document TEXT NOT NULL
);
"""


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _encode(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Document is not JSON-serializable: {e}") from e


def _decode(text: str, where: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptStoreError(f"Corrupted JSON in {where}: {e}") from e


class SQLiteDaybookStore(DaybookStoreInterface):
    """
    SQLite implementation of the record store.

    One row per document; the document body is JSON text.
    """

    def __init__(
        self,
        db_path: Path | str,
        retry_attempts: int = 3,
        busy_timeout: float = 5.0,
    ):
        self._db_path = str(db_path)
        self._busy_timeout = busy_timeout
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._logger = structlog.get_logger(__name__)
        self._retrying = Retrying(
            stop=stop_after_attempt(retry_attempts),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                if self._db_path != ":memory:":
                    Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    self._db_path,
                    timeout=self._busy_timeout,
                    check_same_thread=False,
                    isolation_level=None,
                )
                conn.executescript(SCHEMA_SQL)
            except (sqlite3.Error, OSError) as e:
                raise ConnectionError(f"Failed to open database {self._db_path}: {e}") from e
            self._conn = conn
        return self._conn

    @contextmanager
    def _transaction(self, conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        # A busy COMMIT leaves the transaction open, so it is rolled back too.
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def _call(self, operation: str, fn: Callable[[sqlite3.Connection], T]) -> T:
        with self._lock:
            conn = self._connect()
            try:
                return self._retrying(fn, conn)
            except StorageError:
                raise
            except sqlite3.Error as e:
                self._logger.error("sqlite_operation_failed", operation=operation, error=str(e))
                raise StorageError(f"Failed to {operation}: {e}") from e

    async def _run(self, operation: str, fn: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._call, operation, fn)

    async def open(self) -> None:
        """Open the database and create tables if needed."""
        await asyncio.to_thread(self._open_locked)

    def _open_locked(self) -> None:
        with self._lock:
            self._connect()

    async def close(self) -> None:
        await asyncio.to_thread(self._close_locked)

    def _close_locked(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ------------------------------------------------------------------
    # Shared helpers (run inside the worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _select_documents(conn: sqlite3.Connection, table: str) -> list[Document]:
        rows = conn.execute(f"SELECT id, document FROM {table} ORDER BY id").fetchall()
        return [_decode(document, f"{table}/{row_id}") for row_id, document in rows]

    @staticmethod
    def _upsert(conn: sqlite3.Connection, table: str, doc_id: str, document: Any) -> None:
        conn.execute(
            f"INSERT OR REPLACE INTO {table} (id, document) VALUES (?, ?)",
            (doc_id, _encode(document)),
        )

    def _upsert_many(self, table: str, kind: str, documents: list[Document]) -> Callable:
        rows = [(require_id(doc, kind), doc) for doc in documents]

        def fn(conn: sqlite3.Connection) -> None:
            with self._transaction(conn):
                for doc_id, doc in rows:
                    self._upsert(conn, table, doc_id, doc)

        return fn

    def _replace_table(self, table: str, kind: str, documents: list[Document]) -> Callable:
        rows = [(require_id(doc, kind), doc) for doc in documents]

        def fn(conn: sqlite3.Connection) -> None:
            with self._transaction(conn):
                conn.execute(f"DELETE FROM {table}")
                for doc_id, doc in rows:
                    self._upsert(conn, table, doc_id, doc)

        return fn

    def _delete(self, table: str, doc_id: str) -> Callable:
        def fn(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (doc_id,))
            return cursor.rowcount > 0

        return fn

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def get_all_records(self) -> list[Document]:
        return await self._run(
            "read records",
            lambda conn: self._select_documents(conn, "records"),
        )

    async def save_record(self, document: Document) -> None:
        doc_id = require_id(document, "record")
        await self._run(
            "save record",
            lambda conn: self._upsert(conn, "records", doc_id, document),
        )

    async def put_records(self, documents: list[Document]) -> None:
        await self._run("write records", self._upsert_many("records", "record", documents))

    async def delete_record(self, record_id: str) -> bool:
        return await self._run("delete record", self._delete("records", record_id))

    async def rekey_record(self, old_id: str, document: Document) -> None:
        new_id = require_id(document, "record")

        def fn(conn: sqlite3.Connection) -> None:
            with self._transaction(conn):
                conn.execute("DELETE FROM records WHERE id = ?", (old_id,))
                self._upsert(conn, "records", new_id, document)

        await self._run("re-date record", fn)

    async def bulk_replace_records(self, documents: list[Document]) -> None:
        await self._run("replace records", self._replace_table("records", "record", documents))

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    async def get_structure(self) -> Optional[Any]:
        def fn(conn: sqlite3.Connection) -> Optional[Any]:
            row = conn.execute(
                "SELECT document FROM structure WHERE id = ?", (STRUCTURE_KEY,)
            ).fetchone()
            return _decode(row[0], "structure") if row else None

        return await self._run("read structure", fn)

    async def save_structure(self, document: Any) -> None:
        await self._run(
            "save structure",
            lambda conn: self._upsert(conn, "structure", STRUCTURE_KEY, document),
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_setting(self, key: str) -> Optional[Any]:
        def fn(conn: sqlite3.Connection) -> Optional[Any]:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return _decode(row[0], f"settings/{key}") if row else None

        return await self._run("read setting", fn)

    async def get_all_settings(self) -> dict[str, Any]:
        def fn(conn: sqlite3.Connection) -> dict[str, Any]:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
            return {key: _decode(value, f"settings/{key}") for key, value in rows}

        return await self._run("read settings", fn)

    async def save_setting(self, key: str, value: Any) -> None:
        await self._run(
            "save setting",
            lambda conn: conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, _encode(value)),
            ),
        )

    # ------------------------------------------------------------------
    # Gas logs
    # ------------------------------------------------------------------

    async def get_gas_logs(self) -> list[Document]:
        return await self._run(
            "read gas logs",
            lambda conn: self._select_documents(conn, "gas_logs"),
        )

    async def save_gas_log(self, document: Document) -> None:
        doc_id = require_id(document, "gas log")
        await self._run(
            "save gas log",
            lambda conn: self._upsert(conn, "gas_logs", doc_id, document),
        )

    async def put_gas_logs(self, documents: list[Document]) -> None:
        await self._run("write gas logs", self._upsert_many("gas_logs", "gas log", documents))

    async def delete_gas_log(self, log_id: str) -> bool:
        return await self._run("delete gas log", self._delete("gas_logs", log_id))

    async def bulk_replace_gas_logs(self, documents: list[Document]) -> None:
        await self._run(
            "replace gas logs",
            self._replace_table("gas_logs", "gas log", documents),
        )

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def replace_all(
        self,
        records: list[Document],
        structure: Any,
        gas_logs: Optional[list[Document]] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> None:
        record_rows = [(require_id(doc, "record"), doc) for doc in records]
        gas_rows = (
            [(require_id(doc, "gas log"), doc) for doc in gas_logs]
            if gas_logs is not None
            else None
        )

        def fn(conn: sqlite3.Connection) -> None:
            with self._transaction(conn):
                conn.execute("DELETE FROM records")
                for doc_id, doc in record_rows:
                    self._upsert(conn, "records", doc_id, doc)
                self._upsert(conn, "structure", STRUCTURE_KEY, structure)
                if gas_rows is not None:
                    conn.execute("DELETE FROM gas_logs")
                    for doc_id, doc in gas_rows:
                        self._upsert(conn, "gas_logs", doc_id, doc)
                for key, value in (settings or {}).items():
                    conn.execute(
                        "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                        (key, _encode(value)),
                    )

        await self._run("restore backup", fn)
