"""Entities organized by business concept.

Each entity package holds its domain model (entity.py), its persistence
model (table.py) and its data access layer (repository.py).
"""

from .service.product import Product, ProductRepository, ProductTable

__all__ = ["Product", "ProductRepository", "ProductTable"]
