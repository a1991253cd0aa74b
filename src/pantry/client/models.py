"""Records held by the offline client: cached products and outbox entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.pantry.entities.service.product import Product
from src.pantry.entities.service.product.entity import parse_expiry_date


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


class CachedProduct(BaseModel):
    """A product as stored in the local cache.

    Negative ids are placeholders for records created while offline.
    The underscore-prefixed annotations exist only locally and are never
    sent to the API.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str
    quantity: int
    unit: str
    expiry_date: str | None = None
    offline: bool = Field(default=False, alias="_offline")
    created_at: str | None = Field(default=None, alias="_createdAt")
    updated_at: str | None = Field(default=None, alias="_updatedAt")

    @classmethod
    def from_product(cls, product: Product) -> CachedProduct:
        return cls(
            id=product.id,
            name=product.name,
            quantity=product.quantity,
            unit=product.unit,
            expiry_date=product.expiry_date,
        )

    @property
    def is_placeholder(self) -> bool:
        return self.id < 0

    def fields(self) -> dict[str, Any]:
        """The four API fields, in wire format."""
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "expiry_date": self.expiry_date,
        }

    def expiry_as_date(self) -> date | None:
        try:
            return parse_expiry_date(self.expiry_date)
        except ValueError:
            return None

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class OperationKind(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class OutboxEntry(BaseModel):
    """One mutation waiting for confirmation by the API.

    ``enqueued_at`` orders the queue and doubles as the entry's unique key;
    several entries may target the same product.
    """

    kind: OperationKind
    target_id: int
    payload: dict[str, Any] | None = None
    enqueued_at: str
    attempts: int = 0
    last_error: str | None = None

    @property
    def key(self) -> str:
        return self.enqueued_at


@dataclass
class SyncReport:
    """Outcome of one replay pass over the outbox."""

    synced: list[OutboxEntry] = field(default_factory=list)
    failed: list[OutboxEntry] = field(default_factory=list)
    stalled: list[OutboxEntry] = field(default_factory=list)
    remaining: int = 0
    skipped: bool = False

    @property
    def complete(self) -> bool:
        return not self.skipped and self.remaining == 0
