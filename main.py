"""
main.py
-------
Entry point for storekeeper.

Responsibilities:
    - Initialize the database connection pool and schema.
    - Print the featured products.
    - Run housekeeping (archive old products, delete inactive users).
"""

from db.init_db import create_tables
from services.database_service import DatabaseService
from utils.logger import get_logger

logger = get_logger(__name__)


def main() -> None:
    """Connect, show the featured catalog, clean up and disconnect."""

    # ── 1. Database setup ─────────────────────────────────
    logger.info("Initializing database...")
    service = DatabaseService()
    service.connect()

    try:
        create_tables(service.pool)

        # ── 2. Featured catalog ───────────────────────────
        featured = service.products.find_featured()
        if not featured:
            print("No featured products.")
        for product in featured:
            print(product)

        # ── 3. Housekeeping ───────────────────────────────
        service.cleanup()
    finally:
        # ── 4. Cleanup on shutdown ────────────────────────
        service.disconnect()
        logger.info("storekeeper stopped.")


if __name__ == "__main__":
    main()
