"""
db/executor.py
--------------
The narrow interface the pool and repositories use to reach a storage
engine, plus the PostgreSQL (psycopg2) and SQLite (sqlite3) implementations.

An executor owns exactly one physical connection. It is driven by one
borrower at a time, so it carries no locking of its own.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Optional, Protocol, Sequence

import psycopg2
from psycopg2 import extras

import config
from db.errors import InvalidArgument
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ExecutionResult:
    """
    Outcome of one statement.

    Attributes:
        rows: Result rows as dicts (empty for statements without a result set).
        rowcount: Rows affected, as reported by the driver (-1 if unknown).
        generated_id: Identifier produced by an INSERT, if any.
    """
    rows: list[dict] = field(default_factory=list)
    rowcount: int = -1
    generated_id: Optional[Any] = None


class Executor(Protocol):
    backend: str
    paramstyle: str

    def execute(self, text: str, bindings: Sequence[Any]) -> ExecutionResult:
        ...

    def close(self) -> None:
        ...


def _first_value(row: Optional[dict]) -> Optional[Any]:
    if not row:
        return None
    return next(iter(row.values()))


class PostgresExecutor:
    """
    One psycopg2 connection. Each statement runs in its own transaction:
    committed on success, rolled back on failure.
    """

    backend = "postgresql"
    paramstyle = "format"

    def __init__(self, dsn: str):
        self._conn = psycopg2.connect(dsn)
        logger.debug("Opened PostgreSQL connection")

    def execute(self, text: str, bindings: Sequence[Any]) -> ExecutionResult:
        try:
            with self._conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(text, list(bindings))
                rows = [dict(r) for r in cur.fetchall()] if cur.description else []
                rowcount = cur.rowcount
            self._conn.commit()
        except Exception:
            if not self._conn.closed:
                self._conn.rollback()
            raise
        generated_id = _first_value(rows[0]) if rows and text.startswith("INSERT") else None
        return ExecutionResult(rows=rows, rowcount=rowcount, generated_id=generated_id)

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()


# SQLite stores timestamps as TEXT in its own `YYYY-MM-DD HH:MM:SS` layout,
# so bound datetimes use the same layout and compare correctly as strings.
def _adapt_datetime(value: datetime) -> str:
    return value.isoformat(" ")


def _convert_timestamp(raw: bytes) -> datetime:
    return datetime.fromisoformat(raw.decode())


def _convert_boolean(raw: bytes) -> bool:
    return bool(int(raw))


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_adapter(date, date.isoformat)
sqlite3.register_converter("TIMESTAMP", _convert_timestamp)
sqlite3.register_converter("BOOLEAN", _convert_boolean)


class SqliteExecutor:
    """
    One sqlite3 connection in autocommit mode. Columns declared BOOLEAN or
    TIMESTAMP are read back as bool and datetime.
    """

    backend = "sqlite"
    paramstyle = "qmark"

    def __init__(self, path: str):
        self._conn = sqlite3.connect(
            path,
            check_same_thread=False,
            isolation_level=None,
            detect_types=sqlite3.PARSE_DECLTYPES,
        )
        self._conn.row_factory = sqlite3.Row
        logger.debug(f"Opened SQLite connection to {path}")

    def execute(self, text: str, bindings: Sequence[Any]) -> ExecutionResult:
        cur = self._conn.execute(text, list(bindings))
        try:
            rows = [dict(r) for r in cur.fetchall()] if cur.description else []
            generated_id = None
            if text.startswith("INSERT"):
                generated_id = _first_value(rows[0]) if rows else cur.lastrowid
            return ExecutionResult(rows=rows, rowcount=cur.rowcount, generated_id=generated_id)
        finally:
            cur.close()

    def close(self) -> None:
        self._conn.close()


def executor_factory(backend: Optional[str] = None) -> Callable[[], Executor]:
    """
    Build the `connect` callable the pool uses to open new connections.

    Args:
        backend: 'postgresql' or 'sqlite'; defaults to config.DB_BACKEND.

    Raises:
        InvalidArgument: If the backend name is unknown.
    """
    backend = (backend or config.DB_BACKEND).lower()
    if backend == "postgresql":
        return lambda: PostgresExecutor(config.DATABASE_URL)
    if backend == "sqlite":
        return lambda: SqliteExecutor(config.SQLITE_PATH)
    raise InvalidArgument(f"Unsupported database backend: {backend!r}")
