"""
db/hooks.py
-----------
Observability hook invoked by the pool and the repositories at fixed points:
statement built, connection acquired, connection released, execution failed.
Business code never logs these events itself.
"""

from typing import Callable

from utils.logger import get_logger

logger = get_logger(__name__)


class DataAccessHook:
    """No-op hook. Subclass and override the events you care about."""

    def statement_built(self, statement) -> None:
        pass

    def connection_acquired(self, handle) -> None:
        pass

    def connection_released(self, handle) -> None:
        pass

    def execution_failed(self, statement, error: BaseException) -> None:
        pass


class LoggingHook(DataAccessHook):
    """Default hook: writes every event through the module logger."""

    def statement_built(self, statement) -> None:
        logger.debug(f"Built statement: {statement.text} ({len(statement.bindings)} bindings)")

    def connection_acquired(self, handle) -> None:
        logger.debug(f"Acquired connection #{handle.id}")

    def connection_released(self, handle) -> None:
        logger.debug(f"Released connection #{handle.id}")

    def execution_failed(self, statement, error: BaseException) -> None:
        logger.error(f"Statement failed: {statement.text}: {error}")


DEFAULT_HOOK = LoggingHook()


def notify(event: Callable, *args) -> None:
    """
    Invoke one hook event. A failing hook is logged and otherwise ignored.
    """
    try:
        event(*args)
    except Exception as e:
        logger.warning(f"Hook {getattr(event, '__name__', event)} raised: {e}")
