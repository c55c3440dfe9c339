"""
repositories/user_repo.py
--------------------------
Data access layer for user accounts.
"""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

import config
from db.errors import InvalidArgument
from models.user import ROLES, User
from repositories.base_repo import BaseRepository
from utils.logger import get_logger

logger = get_logger(__name__)


class UserRepository(BaseRepository):
    """Repository for CRUD operations on the users table."""

    table = "users"
    record_type = User
    default_field_map = {
        "id": "id",
        "email": "email",
        "name": "name",
        "role": "role",
        "last_active": "last_active",
        "created_at": "created_at",
        "updated_at": "updated_at",
    }

    def __init__(self, *args, inactivity_days: int = config.USER_INACTIVITY_DAYS, **kwargs):
        super().__init__(*args, **kwargs)
        self._inactivity = timedelta(days=inactivity_days)

    # ── CREATE ────────────────────────────────────────────

    def add(self, user: User) -> User:
        """
        Insert a new user.

        Args:
            user: The User to persist.

        Returns:
            The same User with its `id` populated.

        Raises:
            InvalidArgument: If the role is unknown.
        """
        if user.role not in ROLES:
            raise InvalidArgument(f"Unknown role: {user.role!r}")
        user.id = self._insert(self._record_columns(user))
        logger.info(f"Added user #{user.id} <{user.email}>")
        return user

    # ── READ ──────────────────────────────────────────────

    def find_all(self) -> list[User]:
        return self._fetch(self._select())

    def find_by_id(self, user_id: Any) -> Optional[User]:
        return self._fetch_one(self._select().where(self._column_for["id"], user_id))

    def find_by_email(self, email: str) -> Optional[User]:
        return self._fetch_one(self._select().where(self._column_for["email"], email))

    # ── UPDATE ────────────────────────────────────────────

    def update(self, user_id: Any, fields: Mapping[str, Any]) -> int:
        """
        Update selected fields of one user.

        Args:
            user_id: Primary key.
            fields: Domain field name -> new value.

        Returns:
            Number of rows updated (0 or 1).
        """
        if "id" in fields:
            raise InvalidArgument("The user id cannot be updated.")
        if fields.get("role", "user") not in ROLES:
            raise InvalidArgument(f"Unknown role: {fields['role']!r}")
        builder = self._query().update(self._to_columns(fields)).where(self._column_for["id"], user_id)
        return self._count(builder)

    # ── DELETE ────────────────────────────────────────────

    def delete(self, user_id: Any) -> int:
        deleted = self._count(self._query().delete().where(self._column_for["id"], user_id))
        if deleted:
            logger.info(f"Deleted user #{user_id}")
        return deleted

    def delete_inactive(self) -> int:
        """
        Delete users not seen within the inactivity window.

        Returns:
            Number of users deleted.
        """
        threshold = datetime.now() - self._inactivity
        builder = self._query().delete().where(self._column_for["last_active"], "<", threshold)
        deleted = self._count(builder)
        if deleted:
            logger.info(f"Deleted {deleted} users inactive since {threshold:%Y-%m-%d}")
        return deleted
