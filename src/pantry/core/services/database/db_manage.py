"""Schema management for the product database."""

from loguru import logger
from sqlalchemy import Engine
from sqlmodel import SQLModel

from src.pantry.core.services.database.db_session import build_engine
from src.pantry.runtime.context import get_config


class DbManageService:
    def __init__(self, engine: Engine | None = None):
        self._engine = engine or build_engine(get_config())

    def create_all(self) -> None:
        """Create all database tables."""
        from src.pantry.entities.service.product import ProductTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables.")

