"""
models/product.py
-----------------
Domain model for catalog products.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class Product:
    """
    Represents a single catalog product.

    Attributes:
        id: Database primary key (None for new records).
        name: Display name.
        description: Free-text description.
        category: Catalog category.
        price: Unit price.
        stock: Units in stock.
        featured: Whether the product is promoted on the storefront.
        rating: Average customer rating.
        archived: Whether the product has been retired from the catalog.
        image_url: Optional product image.
        created_at: Timestamp when the record was created.
        updated_at: Timestamp of the last modification.
    """
    name: str
    category: str
    price: float
    description: str = ""
    stock: int = 0
    featured: bool = False
    rating: float = 0.0
    archived: bool = False
    image_url: Optional[str] = None
    id: Optional[Any] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def in_stock(self) -> bool:
        """Returns True if at least one unit is available."""
        return self.stock > 0

    def __str__(self) -> str:
        flag = "★" if self.featured else " "
        return f"{flag} {self.name} | {self.category} | {self.price:.2f} ({self.rating:.1f})"
