"""
FastAPI application factory.

Builds the app, registers the error handlers that turn reconciler and
persistence exceptions into ``{"error": ...}`` responses, and manages the
service container over the app lifespan.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from campus2career import __version__
from campus2career.api.routes import router
from campus2career.config.loader import load_config
from campus2career.container import ServiceContainer, build_services
from campus2career.logging import get_logger
from campus2career.persistence import PersistenceError, close_database, init_database
from campus2career.reconciler import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__, component="api")


def _error(status_code: int, message: str, **detail) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **detail})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, exc.message, field=exc.field)

    @app.exception_handler(AuthorizationError)
    async def handle_authorization(request: Request, exc: AuthorizationError) -> JSONResponse:
        return _error(status.HTTP_403_FORBIDDEN, str(exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            exc.message,
            **{f"{exc.entity_type}Id": exc.entity_id, "currentStatus": exc.current_status},
        )

    @app.exception_handler(PersistenceError)
    async def handle_persistence(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error(
            f"Storage failure handling {request.method} {request.url.path}: {exc}",
            extra={"event": "api.request.storage_error", "path": request.url.path},
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request.",
            details=jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
            extra={"event": "api.request.failed", "error_type": type(exc).__name__},
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(
    container: Optional[ServiceContainer] = None,
    config_path: Optional[Path] = None,
    manage_services: bool = False,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        container: Prebuilt services. When omitted, the lifespan loads config,
            initializes the database and builds the services itself.
        config_path: Config file used when building services in the lifespan
        manage_services: Start the repair scheduler on startup and close the
            container on shutdown. Always true when the lifespan builds the
            container.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = app.state.container is None
        if owned:
            app_config, env_config = load_config(config_path)
            init_database(env_config.database_url)
            app.state.container = build_services(app_config, env_config)

        services: ServiceContainer = app.state.container
        if owned or manage_services:
            services.start_background()
        logger.info("Application startup complete", extra={"event": "api.started"})

        yield

        logger.info("Shutting down application", extra={"event": "api.stopping"})
        if owned or manage_services:
            services.close()
        if owned:
            close_database()
            app.state.container = None

    app = FastAPI(
        title="campus2career",
        description="Student applications, invites and notifications over the project marketplace",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container
    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/health")
    def health_check(request: Request) -> dict:
        """Liveness plus mail transport status."""
        services: Optional[ServiceContainer] = request.app.state.container
        if services is None:
            return {"status": "starting"}
        return {
            "status": "healthy",
            "version": __version__,
            "email": dict(services.mail_transport.get_service_status()),
        }

    return app
