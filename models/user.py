"""
models/user.py
--------------
Domain model for user accounts.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

ROLES = ("admin", "user", "guest")


@dataclass
class User:
    """
    Represents a user account.

    Attributes:
        id: Database primary key (None for new records).
        email: Unique login address.
        name: Display name.
        role: One of 'admin', 'user', 'guest'.
        last_active: Last time the user was seen.
        created_at: Timestamp when the record was created.
        updated_at: Timestamp of the last modification.
    """
    email: str
    name: str
    role: str = "user"  # 'admin' | 'user' | 'guest'
    last_active: Optional[datetime] = None
    id: Optional[Any] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_admin(self) -> bool:
        return self.role == "admin"

    def __str__(self) -> str:
        return f"{self.name} <{self.email}> ({self.role})"
