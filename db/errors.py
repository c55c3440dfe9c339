"""
db/errors.py
------------
Exception hierarchy for the data-access layer.

Builder and argument errors are programmer mistakes and are never retried.
PoolExhaustedError is the only error a caller can reasonably retry (with
backoff); QueryExecutionError is surfaced as-is because mutations are not
safe to replay.
"""


class DataAccessError(Exception):
    """Base class for every error raised by this package."""


class BuilderStateError(DataAccessError):
    """A statement was built (or a verb chosen) in an invalid order or shape."""


class InvalidArgument(DataAccessError, ValueError):
    """A clause or configuration parameter was rejected."""


class IllegalStateError(DataAccessError, RuntimeError):
    """An operation is not allowed in the current lifecycle state."""


# ── Pool ──────────────────────────────────────────────────

class PoolError(DataAccessError):
    """Base class for connection pool failures."""


class PoolExhaustedError(PoolError, TimeoutError):
    """No handle became available before the acquire timeout elapsed."""


class PoolClosedError(PoolError):
    """The pool has been shut down."""


class ConnectionFailedError(PoolError):
    """The backend refused to open a new connection."""


# ── Execution ─────────────────────────────────────────────

class QueryExecutionError(DataAccessError):
    """
    The backend rejected or failed a statement.

    Attributes:
        statement: The RenderedStatement that failed.
    """

    def __init__(self, message: str, statement=None):
        super().__init__(message)
        self.statement = statement


class RowMappingError(DataAccessError):
    """A result row could not be mapped onto a domain record."""
