from dataclasses import dataclass

from src.pantry.core.services.database.db_session import DbSessionService


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
