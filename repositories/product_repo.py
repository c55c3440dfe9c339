"""
repositories/product_repo.py
----------------------------
Data access layer for catalog products.
Every query shape on the `products` table lives here.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

import config
from models.product import Product
from repositories.base_repo import BaseRepository
from utils.logger import get_logger

logger = get_logger(__name__)

FEATURED_LIMIT = 10


class ProductRepository(BaseRepository):
    """Repository for the products table."""

    table = "products"
    record_type = Product
    default_field_map = {
        "id": "id",
        "name": "name",
        "description": "description",
        "category": "category",
        "price": "price",
        "stock": "stock",
        "featured": "featured",
        "rating": "rating",
        "archived": "archived",
        "image_url": "image_url",
        "created_at": "created_at",
        "updated_at": "updated_at",
    }

    def __init__(self, *args, retention_days: int = config.PRODUCT_RETENTION_DAYS, **kwargs):
        super().__init__(*args, **kwargs)
        self._retention = timedelta(days=retention_days)

    # ── CREATE ────────────────────────────────────────────

    def add(self, product: Product) -> Product:
        """
        Insert a new product.

        Returns:
            The same Product with its `id` populated.
        """
        product.id = self._insert(self._record_columns(product))
        logger.info(f"Added product #{product.id} '{product.name}'")
        return product

    # ── READ ──────────────────────────────────────────────

    def find_all(self) -> list[Product]:
        return self._fetch(self._select())

    def find_by_id(self, product_id: Any) -> Optional[Product]:
        """Fetch a single product, or None if no row matches."""
        return self._fetch_one(self._select().where(self._column_for["id"], product_id))

    def find_by_category(self, category: str) -> list[Product]:
        return self._fetch(self._select().where(self._column_for["category"], category))

    def find_featured(self) -> list[Product]:
        """The top-rated featured products, at most ten."""
        builder = (
            self._select()
            .where(self._column_for["featured"], True)
            .order_by(self._column_for["rating"], "DESC")
            .limit(FEATURED_LIMIT)
        )
        return self._fetch(builder)

    # ── UPDATE ────────────────────────────────────────────

    def archive_old(self) -> int:
        """
        Archive every product created before the retention window.

        Returns:
            Number of products archived.
        """
        threshold = datetime.now() - self._retention
        builder = (
            self._query()
            .update({self._column_for["archived"]: True})
            .where(self._column_for["created_at"], "<", threshold)
        )
        archived = self._count(builder)
        if archived:
            logger.info(f"Archived {archived} products created before {threshold:%Y-%m-%d}")
        return archived
