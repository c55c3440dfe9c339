"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

from typing import Optional

from db.connection import ConnectionPool, get_pool
from utils.logger import get_logger

logger = get_logger(__name__)

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS products (
        id              SERIAL PRIMARY KEY,
        name            VARCHAR(200) NOT NULL,
        description     TEXT DEFAULT '',
        category        VARCHAR(100) NOT NULL,
        price           DOUBLE PRECISION NOT NULL,
        stock           INT DEFAULT 0,
        featured        BOOLEAN DEFAULT FALSE,
        rating          DOUBLE PRECISION DEFAULT 0,
        archived        BOOLEAN DEFAULT FALSE,
        image_url       TEXT,
        created_at      TIMESTAMP DEFAULT NOW(),
        updated_at      TIMESTAMP DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id              SERIAL PRIMARY KEY,
        email           VARCHAR(255) UNIQUE NOT NULL,
        name            VARCHAR(100) NOT NULL,
        role            VARCHAR(10) NOT NULL DEFAULT 'user' CHECK (role IN ('admin', 'user', 'guest')),
        last_active     TIMESTAMP,
        created_at      TIMESTAMP DEFAULT NOW(),
        updated_at      TIMESTAMP DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_products_category ON products(category)",
    "CREATE INDEX IF NOT EXISTS idx_products_featured ON products(rating) WHERE featured = TRUE",
    "CREATE INDEX IF NOT EXISTS idx_users_last_active ON users(last_active)",
]

SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS products (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        name            TEXT NOT NULL,
        description     TEXT DEFAULT '',
        category        TEXT NOT NULL,
        price           REAL NOT NULL,
        stock           INTEGER DEFAULT 0,
        featured        BOOLEAN DEFAULT 0,
        rating          REAL DEFAULT 0,
        archived        BOOLEAN DEFAULT 0,
        image_url       TEXT,
        created_at      TIMESTAMP DEFAULT (datetime('now', 'localtime')),
        updated_at      TIMESTAMP DEFAULT (datetime('now', 'localtime'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        email           TEXT UNIQUE NOT NULL,
        name            TEXT NOT NULL,
        role            TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin', 'user', 'guest')),
        last_active     TIMESTAMP,
        created_at      TIMESTAMP DEFAULT (datetime('now', 'localtime')),
        updated_at      TIMESTAMP DEFAULT (datetime('now', 'localtime'))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_products_category ON products(category)",
    "CREATE INDEX IF NOT EXISTS idx_users_last_active ON users(last_active)",
]

SCHEMAS = {"postgresql": POSTGRES_SCHEMA, "sqlite": SQLITE_SCHEMA}


def create_tables(pool: Optional[ConnectionPool] = None, backend: Optional[str] = None) -> None:
    """
    Execute the schema statements for the backend, one at a time.
    Safe to call multiple times (uses IF NOT EXISTS).

    Args:
        pool: Pool to run on; defaults to the process-wide pool.
        backend: Schema to apply; defaults to the backend of the borrowed
            connection.
    """
    pool = pool or get_pool()
    with pool.connection() as handle:
        statements = SCHEMAS[(backend or handle.backend).lower()]
        try:
            for sql in statements:
                handle.execute(sql.strip(), [])
        except Exception as e:
            pool.mark_broken(handle)
            logger.error(f"Failed to initialize schema: {e}")
            raise
    logger.info("Database schema initialized successfully.")


if __name__ == "__main__":
    from db.connection import close_pool, configure
    configure()
    try:
        create_tables()
    finally:
        close_pool()
    print("Database schema created successfully.")
