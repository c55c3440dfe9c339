"""
services/database_service.py
-----------------------------
Owns the lifecycle of the process-wide pool and hands out repositories
bound to it.
"""

from typing import Callable, Optional

import config
from db.connection import ConnectionPool, close_pool, configure
from db.errors import IllegalStateError
from db.executor import Executor
from db.hooks import DataAccessHook
from repositories.product_repo import ProductRepository
from repositories.user_repo import UserRepository
from utils.logger import get_logger

logger = get_logger(__name__)


class DatabaseService:
    """Connects the pool, exposes the repositories and runs housekeeping."""

    def __init__(
        self,
        connect: Optional[Callable[[], Executor]] = None,
        hook: Optional[DataAccessHook] = None,
        paramstyle: Optional[str] = None,
    ):
        self._connect = connect
        self._hook = hook
        self._paramstyle = paramstyle
        self.pool: Optional[ConnectionPool] = None
        self.products: Optional[ProductRepository] = None
        self.users: Optional[UserRepository] = None

    def connect(self) -> None:
        """Configure the process-wide pool from settings and bind the repositories."""
        self.pool = configure(
            config.POOL_MAX_SIZE,
            config.POOL_ACQUIRE_TIMEOUT_SECONDS,
            connect=self._connect,
            hook=self._hook,
        )
        self.products = ProductRepository(self.pool, hook=self._hook, paramstyle=self._paramstyle)
        self.users = UserRepository(self.pool, hook=self._hook, paramstyle=self._paramstyle)

    def cleanup(self) -> dict:
        """
        Housekeeping: delete inactive users and archive old products.

        Returns:
            Dict with keys 'users_deleted' and 'products_archived'.
        """
        if self.pool is None:
            raise IllegalStateError("DatabaseService is not connected. Call connect() first.")
        result = {
            "users_deleted": self.users.delete_inactive(),
            "products_archived": self.products.archive_old(),
        }
        logger.info(f"Cleanup finished: {result}")
        return result

    def disconnect(self) -> None:
        close_pool()
        self.pool = None
        self.products = None
        self.users = None
