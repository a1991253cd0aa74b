"""Product database table model."""

from datetime import date

from sqlmodel import Field

from src.pantry.entities.core._base import EntityTable


class ProductTable(EntityTable, table=True):
    """Database persistence model for products.

    This represents how the Product entity is stored in the database.
    It's separate from the domain entity to maintain clean architecture
    while keeping related code together.
    """

    __tablename__ = "product"

    name: str = Field(max_length=200, index=True)
    quantity: int
    unit: str = Field(max_length=20)
    expiry_date: date | None = Field(default=None)
