"""SQLAlchemy models."""

from katalog.models.base import Base
from katalog.models.category import PARENT_LEVEL, Category, CategoryLevel
from katalog.models.product import Product
from katalog.models.store import Store, StoreCategory

__all__ = [
    # Base
    "Base",
    # Store
    "Store",
    "StoreCategory",
    # Category tree
    "Category",
    "CategoryLevel",
    "PARENT_LEVEL",
    # Products
    "Product",
]
