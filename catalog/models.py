"""
catalog/models.py -- Domain dataclasses for the product catalog.

These are pure data containers. Validation lives in api/models.py,
persistence in catalog/store.py, and mutation logic in catalog/service.py.

to_dict() produces the public JSON shape (camelCase keys) shared by HTTP
responses and real-time notifications, so both channels describe a product
identically.
"""

from dataclasses import dataclass
from typing import Any, Optional

CATEGORIES: tuple[str, ...] = ("Electronics", "Clothing", "Books", "Home", "Sports", "Other")

# Above this price a product is flagged as expensive in the public payload.
EXPENSIVE_PRICE = 100.0


@dataclass
class Product:
    """A catalog entry.

    id is None before the service assigns one. created_at / updated_at are
    ISO 8601 UTC strings; updated_at never sorts before created_at.
    """

    name: str
    price: float
    category: str
    description: str = ""
    in_stock: bool = True
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def formatted_price(self) -> str:
        return f"${self.price:.2f}"

    @property
    def is_expensive(self) -> bool:
        return self.price > EXPENSIVE_PRICE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "formattedPrice": self.formatted_price,
            "isExpensive": self.is_expensive,
            "description": self.description,
            "category": self.category,
            "inStock": self.in_stock,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class ProductFilters:
    """Constraints for listing products. None means "no constraint".

    category and name are case-insensitive substring matches; the price
    bounds are inclusive. All set constraints must hold (logical AND).
    """

    category: Optional[str] = None
    name: Optional[str] = None
    in_stock: Optional[bool] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
