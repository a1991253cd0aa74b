"""Entity: Product."""

import re
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from src.pantry.entities.core._base import Entity

EXPIRY_DATE_FORMAT = "%Y-%m-%d"
EXPIRY_DATE_MESSAGE = "Expiry date must be in the format yyyy-MM-dd (e.g., 2024-12-31)"
NAME_MAX_LENGTH = 200
UNIT_MAX_LENGTH = 20

# Offered by the CLI; the API only checks the length.
KNOWN_UNITS = (
    "piece",
    "gram",
    "kilogram",
    "milliliter",
    "liter",
    "szt",
    "g",
    "kg",
    "ml",
    "l",
)

_EXPIRY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_expiry_date(value: str | None) -> date | None:
    """Parse a strict ``yyyy-MM-dd`` date; blank means "does not expire"."""
    if value is None or not value.strip():
        return None
    text = value.strip()
    if not _EXPIRY_PATTERN.match(text):
        raise ValueError(EXPIRY_DATE_MESSAGE)
    try:
        return datetime.strptime(text, EXPIRY_DATE_FORMAT).date()
    except ValueError as e:
        raise ValueError(EXPIRY_DATE_MESSAGE) from e


def validation_messages(exc: PydanticValidationError) -> list[str]:
    """Flatten a pydantic error into the human-readable messages the API returns."""
    messages = []
    for error in exc.errors():
        message = error.get("msg", "")
        messages.append(message.removeprefix("Value error, "))
    return messages


class ProductDraft(BaseModel):
    """The four user-editable fields, validated as the API validates them.

    Used both as the body of create/update requests and by the sync client
    to reject a bad draft before it reaches the network or the local cache.
    """

    name: str | None = Field(default=None, validate_default=True)
    quantity: int | None = Field(default=None, validate_default=True)
    unit: str | None = Field(default=None, validate_default=True)
    expiry_date: str | None = Field(default=None)

    @field_validator("name", mode="before")
    @classmethod
    def _check_name(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Product name is required")
        if not isinstance(value, str):
            raise ValueError("Product name must be text")
        value = value.strip()
        if len(value) > NAME_MAX_LENGTH:
            raise ValueError("Product name must be between 1 and 200 characters")
        return value

    @field_validator("quantity", mode="before")
    @classmethod
    def _check_quantity(cls, value: Any) -> int:
        if value is None:
            raise ValueError("Quantity is required")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("Quantity must be a whole number")
        if value < 1:
            raise ValueError("Quantity must be greater than 0")
        return value

    @field_validator("unit", mode="before")
    @classmethod
    def _check_unit(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value):
            raise ValueError("Unit is required")
        if not isinstance(value, str):
            raise ValueError("Unit must be text")
        if len(value) > UNIT_MAX_LENGTH:
            raise ValueError("Unit must be between 1 and 20 characters")
        return value

    @field_validator("expiry_date", mode="before")
    @classmethod
    def _check_expiry_date(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(EXPIRY_DATE_MESSAGE)
        parsed = parse_expiry_date(value)
        return parsed.isoformat() if parsed else None

    def expiry_as_date(self) -> date | None:
        return parse_expiry_date(self.expiry_date)


class ProductPatch(BaseModel):
    """A partial update; unset fields keep their current value."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    quantity: int | None = None
    unit: str | None = None
    expiry_date: str | None = None

    def apply_to(self, current: dict[str, Any]) -> ProductDraft:
        """Overlay the fields set on this patch onto ``current`` and validate."""
        merged = {
            "name": current.get("name"),
            "quantity": current.get("quantity"),
            "unit": current.get("unit"),
            "expiry_date": current.get("expiry_date"),
        }
        merged.update(self.model_dump(exclude_unset=True))
        return ProductDraft.model_validate(merged)


class Product(Entity):
    """Product entity as exposed by the API.

    ``expiry_date`` travels as the literal ``yyyy-MM-dd`` string so that
    reading a record back never reformats or shifts the date.
    """

    name: str = Field(description="Product name")
    quantity: int = Field(description="Quantity on hand")
    unit: str = Field(description="Unit of measure")
    expiry_date: str | None = Field(default=None, description="Expiry date (yyyy-MM-dd)")

    @field_validator("expiry_date", mode="before")
    @classmethod
    def _serialize_date(cls, value: Any) -> Any:
        if isinstance(value, date):
            return value.strftime(EXPIRY_DATE_FORMAT)
        return value

    def __eq__(self, other: Any) -> bool:
        """Compare products by business attributes, ignoring timestamps."""
        if not isinstance(other, Product):
            return False

        return (
            self.id == other.id
            and self.name == other.name
            and self.quantity == other.quantity
            and self.unit == other.unit
            and self.expiry_date == other.expiry_date
        )

    def __hash__(self) -> int:
        """Hash based on business attributes, ignoring timestamps."""
        return hash((
            self.id,
            self.name,
            self.quantity,
            self.unit,
            self.expiry_date,
        ))
