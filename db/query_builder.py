"""
db/query_builder.py
-------------------
Immutable fluent builder for parameterized statements.

Every fluent call returns a new QueryBuilder, so a partially built shape can
be reused without one caller's clauses leaking into another's. Values never
reach the statement text: each one becomes a placeholder, and the bindings
are ordered assignments first, then predicate values.

    >>> QueryBuilder("products").select().where("id", "42").build()
    RenderedStatement(text='SELECT * FROM products WHERE id = %s', bindings=['42'])
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence, Union

from db.errors import BuilderStateError, InvalidArgument

SELECT = "SELECT"
INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_OPERATORS = frozenset({"=", "!=", "<>", "<", "<=", ">", ">=", "LIKE", "NOT LIKE", "IN", "NOT IN"})
_LIST_OPERATORS = frozenset({"IN", "NOT IN"})
_NULL_OPERATORS = {"=": "IS NULL", "!=": "IS NOT NULL", "<>": "IS NOT NULL"}
_DIRECTIONS = frozenset({"ASC", "DESC"})
_PLACEHOLDERS = {"format": "%s", "qmark": "?"}
_MISSING = object()


@dataclass(frozen=True)
class Predicate:
    """A single `column operator value` filter."""
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class Ordering:
    column: str
    direction: str = "ASC"


@dataclass(frozen=True)
class Statement:
    """
    The accumulated shape of one statement.

    Attributes:
        table: Target table name.
        verb: SELECT, INSERT, UPDATE or DELETE (None until chosen).
        columns: SELECT projection; empty means all columns.
        assignments: Ordered (column, value) pairs for INSERT/UPDATE.
        predicates: Filters, AND-combined in call order.
        ordering: Optional single ORDER BY.
        limit: Optional row limit (SELECT only).
        returning: Columns for a RETURNING clause (mutations only).
    """
    table: str
    verb: Optional[str] = None
    columns: tuple = ()
    assignments: tuple = ()
    predicates: tuple = ()
    ordering: Optional[Ordering] = None
    limit: Optional[int] = None
    returning: tuple = ()


@dataclass(frozen=True)
class RenderedStatement:
    """Statement text with positional placeholders and the values bound to them."""
    text: str
    bindings: list

    @property
    def verb(self) -> str:
        return self.text.split(" ", 1)[0]


def _check_identifier(name: Any, kind: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise InvalidArgument(f"Invalid {kind} name: {name!r}")
    return name


def _check_assignments(assignments: Any, verb: str) -> tuple:
    if not isinstance(assignments, Mapping) or not assignments:
        raise InvalidArgument(f"{verb} requires a non-empty mapping of column -> value.")
    for column in assignments:
        _check_identifier(column, "column")
    return tuple(assignments.items())


class QueryBuilder:
    """
    Fluent, immutable statement builder for a single table.

    Args:
        table: Target table name.
        paramstyle: 'format' renders `%s` placeholders (psycopg2),
            'qmark' renders `?` placeholders (sqlite3).
    """

    def __init__(self, table: str, paramstyle: str = "format", statement: Optional[Statement] = None):
        if paramstyle not in _PLACEHOLDERS:
            raise InvalidArgument(f"Unsupported paramstyle: {paramstyle!r}")
        self._paramstyle = paramstyle
        self._statement = statement or Statement(table=_check_identifier(table, "table"))

    def __repr__(self) -> str:
        return f"QueryBuilder({self._statement!r}, paramstyle={self._paramstyle!r})"

    @property
    def statement(self) -> Statement:
        return self._statement

    @property
    def paramstyle(self) -> str:
        return self._paramstyle

    # ── Verbs ─────────────────────────────────────────────

    def select(self, columns: Optional[Sequence[str]] = None) -> "QueryBuilder":
        """Project the given columns, or all columns when none are given."""
        if isinstance(columns, str):
            columns = [columns]
        projection = tuple(_check_identifier(c, "column") for c in (columns or ()))
        return self._with_verb(SELECT, columns=projection)

    def insert(self, assignments: Mapping[str, Any]) -> "QueryBuilder":
        return self._with_verb(INSERT, assignments=_check_assignments(assignments, INSERT))

    def update(self, assignments: Mapping[str, Any]) -> "QueryBuilder":
        return self._with_verb(UPDATE, assignments=_check_assignments(assignments, UPDATE))

    def delete(self) -> "QueryBuilder":
        return self._with_verb(DELETE)

    # ── Clauses ───────────────────────────────────────────

    def where(self, column: str, operator: Any, value: Any = _MISSING) -> "QueryBuilder":
        """
        Append a predicate. `where(col, value)` is shorthand for `where(col, '=', value)`.

        IN / NOT IN take a non-empty sequence and bind one value per element.
        A None value compares with IS NULL / IS NOT NULL and binds nothing.
        """
        if value is _MISSING:
            operator, value = "=", operator
        _check_identifier(column, "column")
        if not isinstance(operator, str):
            raise InvalidArgument(f"Invalid operator: {operator!r}")
        op = " ".join(operator.upper().split())
        if op not in _OPERATORS:
            raise InvalidArgument(f"Unsupported operator: {operator!r}")

        if op in _LIST_OPERATORS:
            if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                raise InvalidArgument(f"{op} requires a sequence of values, got {value!r}")
            value = tuple(value)
            if not value:
                raise InvalidArgument(f"{op} requires at least one value.")
        elif value is None and op not in _NULL_OPERATORS:
            raise InvalidArgument(f"None can only be compared with =, != or <>, not {op}.")

        predicates = self._statement.predicates + (Predicate(column, op, value),)
        return self._with(predicates=predicates)

    def order_by(self, column: str, direction: str = "ASC") -> "QueryBuilder":
        """Set the ordering; a later call replaces an earlier one."""
        _check_identifier(column, "column")
        normalized = direction.upper() if isinstance(direction, str) else None
        if normalized not in _DIRECTIONS:
            raise InvalidArgument(f"Order direction must be ASC or DESC, got {direction!r}")
        return self._with(ordering=Ordering(column, normalized))

    def limit(self, n: int) -> "QueryBuilder":
        """Set the row limit; a later call replaces an earlier one."""
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise InvalidArgument(f"Limit must be a non-negative integer, got {n!r}")
        return self._with(limit=n)

    def returning(self, columns: Union[str, Sequence[str]]) -> "QueryBuilder":
        if isinstance(columns, str):
            columns = [columns]
        names = tuple(c if c == "*" else _check_identifier(c, "column") for c in columns)
        if not names:
            raise InvalidArgument("RETURNING requires at least one column.")
        return self._with(returning=names)

    # ── Rendering ─────────────────────────────────────────

    def build(self) -> RenderedStatement:
        """Render the statement. Pure: repeated calls yield equal results."""
        return render(self._statement, self._paramstyle)

    def _with(self, **changes) -> "QueryBuilder":
        return QueryBuilder(self._statement.table, self._paramstyle, replace(self._statement, **changes))

    def _with_verb(self, verb: str, **changes) -> "QueryBuilder":
        current = self._statement.verb
        if current is not None and current != verb:
            raise BuilderStateError(f"Statement is already a {current}; cannot make it a {verb}.")
        return self._with(verb=verb, **changes)


def _validate(statement: Statement) -> None:
    verb = statement.verb
    if verb is None:
        raise BuilderStateError("No verb set; call select(), insert(), update() or delete() first.")
    if verb in (INSERT, UPDATE) and not statement.assignments:
        raise BuilderStateError(f"{verb} has no assignments.")
    if verb in (UPDATE, DELETE) and not statement.predicates:
        # Refuse whole-table mutations.
        raise BuilderStateError(f"{verb} without a WHERE predicate is not allowed.")
    if verb == INSERT and statement.predicates:
        raise BuilderStateError("INSERT does not accept WHERE predicates.")
    if verb != SELECT and (statement.ordering is not None or statement.limit is not None):
        raise BuilderStateError(f"ORDER BY / LIMIT are only valid on SELECT, not {verb}.")
    if verb == SELECT and statement.returning:
        raise BuilderStateError("RETURNING is only valid on INSERT, UPDATE or DELETE.")


def _render_predicate(predicate: Predicate, mark: str) -> tuple[str, list]:
    if predicate.value is None:
        return f"{predicate.column} {_NULL_OPERATORS[predicate.operator]}", []
    if predicate.operator in _LIST_OPERATORS:
        marks = ", ".join(mark for _ in predicate.value)
        return f"{predicate.column} {predicate.operator} ({marks})", list(predicate.value)
    return f"{predicate.column} {predicate.operator} {mark}", [predicate.value]


def render(statement: Statement, paramstyle: str = "format") -> RenderedStatement:
    """Render a Statement value into text plus ordered bindings."""
    if paramstyle not in _PLACEHOLDERS:
        raise InvalidArgument(f"Unsupported paramstyle: {paramstyle!r}")
    _validate(statement)
    mark = _PLACEHOLDERS[paramstyle]
    table = statement.table
    bindings: list = []

    if statement.verb == SELECT:
        projection = ", ".join(statement.columns) or "*"
        parts = [f"SELECT {projection} FROM {table}"]
    elif statement.verb == INSERT:
        columns = ", ".join(column for column, _ in statement.assignments)
        marks = ", ".join(mark for _ in statement.assignments)
        parts = [f"INSERT INTO {table} ({columns}) VALUES ({marks})"]
        bindings.extend(value for _, value in statement.assignments)
    elif statement.verb == UPDATE:
        sets = ", ".join(f"{column} = {mark}" for column, _ in statement.assignments)
        parts = [f"UPDATE {table} SET {sets}"]
        bindings.extend(value for _, value in statement.assignments)
    else:
        parts = [f"DELETE FROM {table}"]

    if statement.predicates:
        clauses = []
        for predicate in statement.predicates:
            clause, values = _render_predicate(predicate, mark)
            clauses.append(clause)
            bindings.extend(values)
        parts.append("WHERE " + " AND ".join(clauses))

    if statement.ordering is not None:
        parts.append(f"ORDER BY {statement.ordering.column} {statement.ordering.direction}")
    if statement.limit is not None:
        parts.append(f"LIMIT {statement.limit}")
    if statement.returning:
        parts.append("RETURNING " + ", ".join(statement.returning))

    return RenderedStatement(" ".join(parts), bindings)
