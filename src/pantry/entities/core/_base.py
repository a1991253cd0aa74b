from datetime import UTC, datetime

import sqlalchemy as sa
from pydantic import BaseModel
from pydantic import Field as PydanticField
from sqlmodel import Field, SQLModel


class Entity(BaseModel):
    """Base entity class with a server-assigned integer identifier."""

    id: int | None = PydanticField(
        default=None,
        description="Identifier assigned by the database on insert",
    )


class EntityTable(SQLModel, table=False):
    """Base table with an autoincrement integer key and audit timestamps."""

    id: int | None = Field(
        default=None,
        primary_key=True,
        description="Identifier assigned by the database on insert",
    )

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_column_kwargs={
            "server_default": sa.func.now(),
            "onupdate": sa.func.now(),
        },
    )
