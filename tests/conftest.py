"""
Shared fixtures: an in-memory fake backend that records every statement
and replays scripted results, plus pools built on top of it.
"""

import time
from collections import deque

import pytest

from db import connection
from db.connection import ConnectionPool
from db.executor import ExecutionResult
from db.hooks import DataAccessHook


class FakeExecutor:
    """Records (text, bindings) and pops scripted outcomes from its backend."""

    backend = "postgresql"

    def __init__(self, owner):
        self.owner = owner
        self.paramstyle = owner.paramstyle
        self.closed = False

    def execute(self, text, bindings):
        self.owner.calls.append((text, list(bindings)))
        if self.owner.outcomes:
            outcome = self.owner.outcomes.popleft()
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return ExecutionResult()

    def close(self):
        self.closed = True


class FakeBackend:
    def __init__(self):
        self.calls = []
        self.outcomes = deque()
        self.executors = []
        self.fail_connect = False
        self.paramstyle = "format"

    def connect(self):
        if self.fail_connect:
            raise ConnectionRefusedError("backend unreachable")
        executor = FakeExecutor(self)
        self.executors.append(executor)
        return executor

    def script(self, *outcomes):
        self.outcomes.extend(outcomes)

    @property
    def last_call(self):
        return self.calls[-1]


class RecordingHook(DataAccessHook):
    def __init__(self):
        self.events = []

    def statement_built(self, statement):
        self.events.append(("built", statement.text))

    def connection_acquired(self, handle):
        self.events.append(("acquired", handle.id))

    def connection_released(self, handle):
        self.events.append(("released", handle.id))

    def execution_failed(self, statement, error):
        self.events.append(("failed", str(error)))

    def names(self):
        return [name for name, _ in self.events]


def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true; fail the test on timeout."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not reached in time")
        time.sleep(0.005)


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def hook():
    return RecordingHook()


@pytest.fixture()
def pool(backend, hook):
    p = ConnectionPool(backend.connect, max_size=2, acquire_timeout=1.0, hook=hook)
    yield p
    p.close()


@pytest.fixture()
def global_pool_reset():
    connection.close_pool()
    yield
    connection.close_pool()
