"""Entity package: Product."""

from .entity import KNOWN_UNITS, Product, ProductDraft, ProductPatch
from .filters import ExpiryFilter, SortOrder
from .repository import ProductRepository
from .table import ProductTable

__all__ = [
    "KNOWN_UNITS",
    "ExpiryFilter",
    "Product",
    "ProductDraft",
    "ProductPatch",
    "ProductRepository",
    "ProductTable",
    "SortOrder",
]
