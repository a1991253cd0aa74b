"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, Request
from sqlmodel import Session

from src.pantry.api.http.app_data import ApplicationDependencies


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    """Get the dependencies wired at startup."""
    return request.app.state.app_dependencies


def get_session(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> Iterator[Session]:
    """Yield a database session that is closed once the request is done."""
    session = app_deps.database_service.get_session()
    try:
        yield session
    finally:
        session.close()
