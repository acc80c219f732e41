"""
CertStore - Main FastAPI Application.

Lifecycle service for generated certificate artifacts stored on the local
filesystem, Cloudflare R2 or Amazon S3.
"""

from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from certstore.api.routers import admin, files, storage
from certstore.core.config import Settings, get_settings
from certstore.core.exceptions import CertStoreError
from certstore.core.logging import configure_logging, get_logger
from certstore.models.common import ErrorResponse, HealthResponse
from certstore.services.container import build_container

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings

    # Startup
    logger.info(
        "starting_application",
        env=settings.app_env,
        provider=settings.storage_provider,
    )

    yield

    # Shutdown
    logger.info("shutting_down_application")


def _status_code_name(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).name
    except ValueError:
        return "HTTP_ERROR"


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. Uses default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="""
# CertStore

Storage lifecycle for generated certificates.

## Features

- Retention tiers inferred from storage keys (24h previews, 7 day bulk
  archives, 90 day individual certificates, permanent templates)
- Scheduled cleanup of expired objects
- Retention extension for emailed certificates
- Local filesystem, Cloudflare R2 and Amazon S3 backends

## Authentication

Maintenance endpoints require the shared cleanup secret.

```
X-Cleanup-Key: <secret>
```
        """,
        version=settings.app_version,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Storage", "description": "Cleanup and retention endpoints"},
            {"name": "Files", "description": "File proxy"},
            {"name": "Admin", "description": "Storage inventory and manual deletes"},
            {"name": "Health", "description": "Health check endpoints"},
        ],
    )

    # Built once; every request reads it back from app.state
    app.state.settings = settings
    app.state.storage = build_container(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Exception handlers
    @app.exception_handler(CertStoreError)
    async def certstore_error_handler(
        request: Request, exc: CertStoreError
    ) -> JSONResponse:
        """Handle CertStore errors."""
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                code=exc.error_code,
                error=exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle routing errors (404 unknown route, 405 wrong method)."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=str(exc.detail),
                code=_status_code_name(exc.status_code),
            ).model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle validation errors."""
        errors = []
        for error in exc.errors():
            errors.append({
                "loc": list(error.get("loc", [])),
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            })

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                error="Request validation failed",
                code="VALIDATION_ERROR",
                details={"errors": errors},
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def general_error_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception("unhandled_error", path=request.url.path)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="An unexpected error occurred",
                code="INTERNAL_ERROR",
                details=str(exc) or type(exc).__name__,
            ).model_dump(),
        )

    # Include routers
    app.include_router(storage.router)
    app.include_router(files.router)
    app.include_router(admin.router)

    # Health endpoints
    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="Report the active storage provider and whether it is configured.",
    )
    async def health_check() -> HealthResponse:
        """Check API health."""
        container = app.state.storage
        configured = container.services is not None

        return HealthResponse(
            status="healthy" if configured else "degraded",
            version=settings.app_version,
            storage_provider=container.provider,
            storage_configured=configured,
        )

    @app.get(
        "/",
        include_in_schema=False,
    )
    async def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/redoc",
            "openapi": "/openapi.json",
        }

    return app


# Create default application instance
app = create_app()


def main() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "certstore.api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        workers=settings.app_workers,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
