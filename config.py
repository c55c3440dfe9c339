"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ── Backend ───────────────────────────────────────────────
# 'postgresql' for a server, 'sqlite' for a local file.
DB_BACKEND: str = os.getenv("DB_BACKEND", "postgresql").lower()

# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "storekeeper")
DB_USER: str = os.getenv("DB_USER", "storekeeper")
DB_PASS: str = os.getenv("DB_PASS", "")

DATABASE_URL: str = (
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# ── SQLite ────────────────────────────────────────────────
SQLITE_PATH: str = os.getenv("SQLITE_PATH", "storekeeper.db")

# ── Connection Pool ───────────────────────────────────────
POOL_MAX_SIZE: int = int(os.getenv("POOL_MAX_SIZE", "5"))
POOL_ACQUIRE_TIMEOUT_SECONDS: float = float(os.getenv("POOL_ACQUIRE_TIMEOUT_SECONDS", "5"))

# ── Retention ─────────────────────────────────────────────
PRODUCT_RETENTION_DAYS: int = int(os.getenv("PRODUCT_RETENTION_DAYS", "365"))
USER_INACTIVITY_DAYS: int = int(os.getenv("USER_INACTIVITY_DAYS", "90"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
# Level for the db and repositories loggers; DEBUG traces every statement.
DB_LOG_LEVEL: str = os.getenv("DB_LOG_LEVEL", LOG_LEVEL).upper()
