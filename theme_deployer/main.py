"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from theme_deployer import __version__
from theme_deployer.api.middleware import RequestLoggingMiddleware
from theme_deployer.api.v1.router import router as v1_router
from theme_deployer.config import settings
from theme_deployer.core.deployments import get_deployment_service
from theme_deployer.core.exceptions import ThemeDeployerError
from theme_deployer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Render an error in the envelope shared by every endpoint."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the deployment workers with the app and drain them on shutdown."""
    configure_logging()

    service = get_deployment_service()
    service.worker.start()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        dataverse_configured=settings.dataverse_credentials_configured,
        concurrency=service.worker.concurrency,
        conflict_policy=service.conflict_policy,
    )

    yield

    # No deployment may be left non-terminal once the process exits
    await service.worker.shutdown(reason="service shutting down")
    logger.info("application.shutdown")


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(ThemeDeployerError)
    async def theme_deployer_error_handler(
        request: Request, exc: ThemeDeployerError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request.failed", error=exc.message, path=request.url.path)
        else:
            logger.info("request.rejected", error=exc.message, path=request.url.path)
        return error_response(
            exc.status_code, type(exc).__name__.upper(), exc.message, exc.details
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )
        message = str(exc) if settings.is_development else "An unexpected error occurred"
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Power Pages Theme Deployer API",
        description="Deploys Bootstrap themes with organization branding to Power Pages sites",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "theme_deployer.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
