"""
db/connection.py
----------------
Manages the connection pool.

A ConnectionPool multiplexes many callers over at most `max_size` backend
connections. Idle handles are reused most-recently-released first; when the
pool is full, callers queue and are served strictly in arrival order by
direct hand-off from `release()`. All bookkeeping happens under one lock;
opening and closing backend connections happens outside it.

A process-wide pool is exposed through `configure()`, `get_pool()` and
`close_pool()`.
"""

import itertools
import threading
from collections import deque
from contextlib import contextmanager
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Sequence, Union

import config
from db.errors import (
    ConnectionFailedError,
    IllegalStateError,
    InvalidArgument,
    PoolClosedError,
    PoolExhaustedError,
)
from db.executor import ExecutionResult, Executor, executor_factory
from db.hooks import DEFAULT_HOOK, DataAccessHook, notify
from utils.logger import get_logger

logger = get_logger(__name__)

Duration = Union[int, float, timedelta]


class HandleState(Enum):
    IDLE = "idle"
    IN_USE = "in_use"
    BROKEN = "broken"
    CLOSED = "closed"


class ConnectionHandle:
    """
    One pooled connection slot wrapping a backend executor.

    The handle carries no locking: the pool guarantees a single owner
    while it is IN_USE.
    """

    _ids = itertools.count(1)

    def __init__(self, executor: Executor):
        self.id = next(self._ids)
        self.state = HandleState.IN_USE
        self._executor = executor

    def __repr__(self) -> str:
        return f"<ConnectionHandle #{self.id} {self.state.value}>"

    @property
    def backend(self) -> str:
        """Backend name of the wrapped executor ('postgresql' or 'sqlite')."""
        return getattr(self._executor, "backend", config.DB_BACKEND)

    @property
    def paramstyle(self) -> str:
        """Placeholder style the wrapped executor expects."""
        return getattr(self._executor, "paramstyle", "format")

    def execute(self, text: str, bindings: Sequence[Any]) -> ExecutionResult:
        """Run one statement on the underlying connection."""
        if self.state is not HandleState.IN_USE:
            raise IllegalStateError(f"Connection #{self.id} is {self.state.value}, not in use.")
        return self._executor.execute(text, bindings)

    def _close(self) -> None:
        self.state = HandleState.CLOSED
        try:
            self._executor.close()
        except Exception as e:
            logger.warning(f"Error while closing connection #{self.id}: {e}")


class _Waiter:
    """A queued acquire() call. Granted either a handle or the right to open one."""

    __slots__ = ("event", "handle", "may_open", "closed")

    def __init__(self):
        self.event = threading.Event()
        self.handle: Optional[ConnectionHandle] = None
        self.may_open = False
        self.closed = False

    @property
    def settled(self) -> bool:
        return self.handle is not None or self.may_open or self.closed


def _seconds(value: Duration, name: str) -> float:
    if isinstance(value, timedelta):
        value = value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise InvalidArgument(f"{name} must be a non-negative duration, got {value!r}")
    return float(value)


def _validate_settings(max_size: int, acquire_timeout: Duration) -> tuple[int, float]:
    if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 1:
        raise InvalidArgument(f"max_size must be a positive integer, got {max_size!r}")
    timeout = _seconds(acquire_timeout, "acquire_timeout")
    if timeout == 0:
        raise InvalidArgument("acquire_timeout must be greater than zero.")
    return max_size, timeout


class ConnectionPool:
    """
    Bounded pool of reusable connection handles.

    Args:
        connect: Zero-argument callable opening one backend Executor.
        max_size: Maximum number of live connections.
        acquire_timeout: Default wait (seconds or timedelta) before
            acquire() gives up with PoolExhaustedError.
        hook: Observability hook; defaults to LoggingHook.
    """

    def __init__(
        self,
        connect: Callable[[], Executor],
        max_size: int = config.POOL_MAX_SIZE,
        acquire_timeout: Duration = config.POOL_ACQUIRE_TIMEOUT_SECONDS,
        hook: Optional[DataAccessHook] = None,
    ):
        self._connect = connect
        self._hook = hook or DEFAULT_HOOK
        self._max_size, self._acquire_timeout = _validate_settings(max_size, acquire_timeout)

        self._lock = threading.Lock()
        self._idle: list[ConnectionHandle] = []
        self._in_use: set[ConnectionHandle] = set()
        self._waiters: deque[_Waiter] = deque()
        self._size = 0  # in use + idle + being opened
        self._closed = False
        self._used = False

    # ── Configuration ─────────────────────────────────────

    def configure(self, max_size: int, acquire_timeout: Duration) -> None:
        """
        Change the pool limits.

        Raises:
            InvalidArgument: If a limit is out of range.
            IllegalStateError: If the pool has already served an acquire().
        """
        max_size, timeout = _validate_settings(max_size, acquire_timeout)
        with self._lock:
            if self._used:
                raise IllegalStateError("Pool is already in use and cannot be reconfigured.")
            self._max_size, self._acquire_timeout = max_size, timeout
        logger.info(f"Connection pool configured (max_size={max_size}, acquire_timeout={timeout}s)")

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def acquire_timeout(self) -> float:
        return self._acquire_timeout

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def used(self) -> bool:
        return self._used

    def stats(self) -> dict:
        """Snapshot of the pool's counters."""
        with self._lock:
            return {
                "max_size": self._max_size,
                "size": self._size,
                "idle": len(self._idle),
                "in_use": len(self._in_use),
                "waiting": len(self._waiters),
            }

    # ── Acquire / release ─────────────────────────────────

    def acquire(self, timeout: Optional[Duration] = None) -> ConnectionHandle:
        """
        Borrow a connection handle.

        Args:
            timeout: Override of the pool's acquire_timeout for this call.

        Returns:
            A handle in the IN_USE state, owned by the caller until release().

        Raises:
            PoolClosedError: If the pool is (or becomes) closed.
            PoolExhaustedError: If no handle became available in time.
            ConnectionFailedError: If a new backend connection could not be opened.
        """
        wait = self._acquire_timeout if timeout is None else _seconds(timeout, "timeout")
        handle: Optional[ConnectionHandle] = None
        waiter: Optional[_Waiter] = None

        with self._lock:
            if self._closed:
                raise PoolClosedError("Connection pool is closed.")
            self._used = True
            if self._waiters:
                waiter = self._enqueue_locked()
            elif self._idle:
                handle = self._idle.pop()
                handle.state = HandleState.IN_USE
                self._in_use.add(handle)
            elif self._size < self._max_size:
                self._size += 1
            else:
                waiter = self._enqueue_locked()

        if waiter is not None:
            handle = self._wait(waiter, wait)
        if handle is None:
            handle = self._open()

        notify(self._hook.connection_acquired, handle)
        return handle

    def release(self, handle: ConnectionHandle) -> None:
        """
        Return a borrowed handle. Broken handles, and any handle released
        after close(), are closed and their slot freed.

        Raises:
            InvalidArgument: If the handle is not checked out from this pool.
        """
        with self._lock:
            if handle not in self._in_use:
                raise InvalidArgument(f"Connection #{handle.id} is not checked out from this pool.")
            self._in_use.remove(handle)
            discarded = self._checkin_locked(handle)

        if discarded is not None:
            discarded._close()
        notify(self._hook.connection_released, handle)

    def mark_broken(self, handle: ConnectionHandle) -> None:
        """
        Flag a borrowed handle as unusable. It still has to be released;
        release() then discards it instead of returning it to the idle set.
        """
        with self._lock:
            if handle not in self._in_use:
                raise InvalidArgument(f"Connection #{handle.id} is not checked out from this pool.")
            handle.state = HandleState.BROKEN
        logger.warning(f"Connection #{handle.id} marked broken; it will be discarded on release.")

    @contextmanager
    def connection(self, timeout: Optional[Duration] = None) -> Iterator[ConnectionHandle]:
        """Scoped acquisition: the handle is released on every exit path."""
        handle = self.acquire(timeout)
        try:
            yield handle
        finally:
            self.release(handle)

    def close(self) -> None:
        """
        Shut the pool down. Idle handles close now, in-use handles close when
        released, queued waiters fail with PoolClosedError. Idempotent.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle, self._idle = self._idle, []
            self._size -= len(idle)
            for handle in idle:
                handle.state = HandleState.CLOSED
            while self._waiters:
                waiter = self._waiters.popleft()
                waiter.closed = True
                waiter.event.set()
            in_use = len(self._in_use)

        for handle in idle:
            handle._close()
        logger.info(f"Connection pool closed ({len(idle)} idle closed, {in_use} in use pending release).")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ── Internals ─────────────────────────────────────────

    def _enqueue_locked(self) -> _Waiter:
        waiter = _Waiter()
        self._waiters.append(waiter)
        return waiter

    def _wait(self, waiter: _Waiter, timeout: float) -> Optional[ConnectionHandle]:
        """Block until the waiter is served. None means it may open a new connection."""
        try:
            served = waiter.event.wait(timeout)
        except BaseException:
            self._abandon(waiter)
            raise

        if not served:
            with self._lock:
                if not waiter.settled:
                    self._waiters.remove(waiter)
                    raise PoolExhaustedError(
                        f"No connection available within {timeout}s (max_size={self._max_size})."
                    )
            # Served between the timeout and taking the lock: keep the grant.

        if waiter.closed:
            raise PoolClosedError("Connection pool was closed while waiting.")
        return waiter.handle

    def _abandon(self, waiter: _Waiter) -> None:
        """Withdraw a waiter interrupted mid-wait, returning anything it was granted."""
        discarded = None
        with self._lock:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            elif waiter.may_open:
                self._size -= 1
                self._grant_slot_locked()
            elif waiter.handle is not None:
                self._in_use.discard(waiter.handle)
                discarded = self._checkin_locked(waiter.handle)
        if discarded is not None:
            discarded._close()

    def _open(self) -> ConnectionHandle:
        """Open a backend connection into a slot already reserved in _size."""
        try:
            executor = self._connect()
        except Exception as e:
            with self._lock:
                self._size -= 1
                self._grant_slot_locked()
            logger.error(f"Failed to open a database connection: {e}")
            raise ConnectionFailedError(f"Could not open a database connection: {e}") from e

        handle = ConnectionHandle(executor)
        with self._lock:
            closed = self._closed
            if closed:
                self._size -= 1
            else:
                self._in_use.add(handle)
        if closed:
            handle._close()
            raise PoolClosedError("Connection pool was closed while opening a connection.")
        logger.debug(f"Opened connection #{handle.id}")
        return handle

    def _checkin_locked(self, handle: ConnectionHandle) -> Optional[ConnectionHandle]:
        """Route a returned handle. Returns it if the caller must close it."""
        if handle.state is HandleState.BROKEN or self._closed:
            handle.state = HandleState.CLOSED
            self._size -= 1
            self._grant_slot_locked()
            return handle
        if self._waiters:
            waiter = self._waiters.popleft()
            handle.state = HandleState.IN_USE
            self._in_use.add(handle)
            waiter.handle = handle
            waiter.event.set()
        else:
            handle.state = HandleState.IDLE
            self._idle.append(handle)
        return None

    def _grant_slot_locked(self) -> None:
        """Let the oldest waiter open a new connection into a freed slot."""
        if self._closed or not self._waiters or self._size >= self._max_size:
            return
        waiter = self._waiters.popleft()
        self._size += 1
        waiter.may_open = True
        waiter.event.set()


# ── Process-wide pool ─────────────────────────────────────

_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def configure(
    max_size: int = config.POOL_MAX_SIZE,
    acquire_timeout: Duration = config.POOL_ACQUIRE_TIMEOUT_SECONDS,
    connect: Optional[Callable[[], Executor]] = None,
    hook: Optional[DataAccessHook] = None,
) -> ConnectionPool:
    """
    Initialize the process-wide connection pool.

    May be called again until the pool serves its first acquire().

    Args:
        max_size: Maximum number of live connections.
        acquire_timeout: Seconds (or timedelta) to wait for a free handle.
        connect: Connection opener; defaults to the configured backend.
        hook: Observability hook.

    Raises:
        IllegalStateError: If the current pool has already been used.
    """
    global _pool
    with _pool_lock:
        if _pool is not None and _pool.used:
            raise IllegalStateError("Database pool already in use; call close_pool() before reconfiguring.")
        _pool = ConnectionPool(connect or executor_factory(), max_size, acquire_timeout, hook)
    logger.info("Database connection pool initialized successfully.")
    return _pool


def get_pool() -> ConnectionPool:
    """
    Get the process-wide pool.

    Raises:
        IllegalStateError: If the pool has not been configured.
    """
    if _pool is None:
        raise IllegalStateError("Database pool not initialized. Call configure() first.")
    return _pool


def close_pool() -> None:
    """Close the process-wide pool and forget it."""
    global _pool
    with _pool_lock:
        pool, _pool = _pool, None
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed.")
