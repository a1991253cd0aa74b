"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.responses import JSONResponse

from src.pantry.api.http.app_data import ApplicationDependencies
from src.pantry.api.http.routers.health import router as health_router
from src.pantry.api.http.routers.service.product import router as product_router
from src.pantry.api.utils.app_startup import configure_logging
from src.pantry.core.services.database.db_manage import DbManageService
from src.pantry.core.services.database.db_session import DbSessionService
from src.pantry.runtime.context import get_config

configure_logging()


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        message = str(error.get("msg", "Invalid request")).removeprefix("Value error, ")
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        if message == "Field required" and location:
            message = f"{location[-1]} is required"
        messages.append(message)
    return messages


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer invalid payloads with 400 and a flat ``errors`` list."""
    errors = _validation_messages(exc)
    logger.bind(status_code=400, errors=errors).info("request.validation_error")
    return JSONResponse(status_code=400, content={"errors": errors})


async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }

    start = time.perf_counter()

    # Everything that logs within this block inherits base_ctx
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=response.status_code,
                duration_ms=round(duration_ms, 1),
            ).info("request.end")

            response.headers.setdefault("X-Request-ID", request_id)
            return response

        except HTTPException as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=exc.status_code,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail, "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )

        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=500,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )


async def startup(app: FastAPI) -> None:
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    deps: ApplicationDependencies | None = getattr(
        app.state, "app_dependencies", None
    )
    if deps is None:
        deps = ApplicationDependencies(database_service=DbSessionService())
        app.state.app_dependencies = deps

    DbManageService(deps.database_service.engine).create_all()


async def shutdown(app: FastAPI) -> None:
    logger.info("Shutting down application")
    deps: ApplicationDependencies | None = getattr(
        app.state, "app_dependencies", None
    )
    if deps is not None:
        deps.database_service.engine.dispose()


def create_app(dependencies: ApplicationDependencies | None = None) -> FastAPI:
    """Build the API.

    Passing ``dependencies`` wires them immediately, which lets tests drive
    the app through transports that never run the lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await startup(app)
        try:
            yield
        finally:
            await shutdown(app)

    config = get_config()
    app = FastAPI(
        title="Pantry Products API",
        lifespan=lifespan,
        docs_url=None if config.app.environment == "production" else "/docs",
        redoc_url=None if config.app.environment == "production" else "/redoc",
    )
    if dependencies is not None:
        app.state.app_dependencies = dependencies

    if config.app.environment == "production" and (
        "*" in config.app.cors.origins and config.app.cors.allow_credentials
    ):
        raise RuntimeError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )
    app.middleware("http")(log_requests)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(health_router)
    app.include_router(product_router, prefix="/products")
    return app


app = create_app()

# expose startup for tests
__all__ = ["app", "create_app", "startup", "shutdown"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_config().app.host,
        port=get_config().app.port,
        access_log=False,  # We handle access logging in middleware
    )
