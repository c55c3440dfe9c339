"""
repositories/base_repo.py
-------------------------
Shared execution protocol for all repositories.

Every operation follows the same steps: shape the statement with a fresh
QueryBuilder, borrow a connection for exactly one statement, render it in
that connection's placeholder style, mark the
connection broken if the backend fails, and map the raw result into domain
records, an affected-row count or a generated id.
"""

from typing import Any, Mapping, Optional

from db.connection import ConnectionPool, get_pool
from db.errors import InvalidArgument, QueryExecutionError, RowMappingError
from db.executor import ExecutionResult
from db.hooks import DEFAULT_HOOK, DataAccessHook, notify
from db.query_builder import QueryBuilder, render
from utils.logger import get_logger

logger = get_logger(__name__)


class BaseRepository:
    """
    Base class binding a table, a domain record type and a column mapping.

    Args:
        pool: Shared connection pool; defaults to the process-wide pool.
        field_map: Backend column name -> domain field name. Defaults to
            the subclass's `default_field_map`.
        hook: Observability hook; defaults to LoggingHook.
        paramstyle: Placeholder style; defaults to that of the connection
            each statement runs on.
    """

    table: str = ""
    record_type: type = dict
    default_field_map: Mapping[str, str] = {}

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        field_map: Optional[Mapping[str, str]] = None,
        hook: Optional[DataAccessHook] = None,
        paramstyle: Optional[str] = None,
    ):
        self._pool = pool if pool is not None else get_pool()
        self._field_map = dict(field_map or self.default_field_map)
        self._column_for = {f: c for c, f in self._field_map.items()}
        self._hook = hook or DEFAULT_HOOK
        self._paramstyle = paramstyle

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    # ── Statement helpers ─────────────────────────────────

    def _query(self) -> QueryBuilder:
        """A fresh builder for this repository's table."""
        return QueryBuilder(self.table)

    def _select(self) -> QueryBuilder:
        return self._query().select(list(self._field_map))

    def _execute(self, builder: QueryBuilder) -> ExecutionResult:
        """
        Run one statement on a pooled connection, rendered with that
        connection's placeholders unless the repository fixes a paramstyle.

        Raises:
            BuilderStateError: If the statement is incomplete.
            QueryExecutionError: If the backend fails; the connection is
                marked broken before it is released.
        """
        with self._pool.connection() as handle:
            statement = render(builder.statement, self._paramstyle or handle.paramstyle)
            notify(self._hook.statement_built, statement)
            try:
                return handle.execute(statement.text, statement.bindings)
            except Exception as e:
                self._pool.mark_broken(handle)
                notify(self._hook.execution_failed, statement, e)
                raise QueryExecutionError(
                    f"{statement.verb} on {self.table} failed: {e}", statement
                ) from e

    def _fetch(self, builder: QueryBuilder) -> list:
        result = self._execute(builder)
        return [self._to_record(row) for row in result.rows]

    def _fetch_one(self, builder: QueryBuilder) -> Optional[Any]:
        records = self._fetch(builder)
        return records[0] if records else None

    def _count(self, builder: QueryBuilder) -> int:
        return max(self._execute(builder).rowcount, 0)

    def _insert(self, columns: Mapping[str, Any]) -> Any:
        """INSERT one row and return its generated id."""
        builder = self._query().insert(columns).returning(self._column_for.get("id", "id"))
        return self._execute(builder).generated_id

    # ── Mapping ───────────────────────────────────────────

    def _to_record(self, row: Mapping[str, Any]) -> Any:
        """Convert a raw result row into a domain record."""
        try:
            values = {field: row[column] for column, field in self._field_map.items()}
        except KeyError as e:
            raise RowMappingError(f"Row from {self.table} has no column {e}") from e
        try:
            return self.record_type(**values)
        except TypeError as e:
            raise RowMappingError(f"Cannot build {self.record_type.__name__} from {self.table} row: {e}") from e

    def _to_columns(self, fields: Mapping[str, Any]) -> dict:
        """Translate domain field names to backend column names."""
        columns = {}
        for name, value in fields.items():
            if name not in self._column_for:
                raise InvalidArgument(f"{self.record_type.__name__} has no mapped field {name!r}")
            columns[self._column_for[name]] = value
        return columns

    def _record_columns(self, record: Any) -> dict:
        """Columns for a new record, skipping fields that are still unset."""
        fields = {}
        for name in self._column_for:
            value = getattr(record, name, None)
            if value is not None:
                fields[name] = value
        return self._to_columns(fields)
