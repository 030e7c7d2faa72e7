"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from netpad import __version__
from netpad.api.middleware import RequestLoggingMiddleware
from netpad.api.v1.router import router as v1_router
from netpad.config import settings
from netpad.core.exceptions import ConflictError, NetPadError, ValidationError
from netpad.services.hosting import get_hosting_provider
from netpad.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def error_body(exc: NetPadError) -> dict[str, Any]:
    """Serialize an error the way clients expect: ``{"error": message}``."""
    content: dict[str, Any] = {"error": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        content["validationErrors"] = exc.errors
    if isinstance(exc, ConflictError) and exc.details.get("suggestion"):
        content["suggestion"] = exc.details["suggestion"]
    return content


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        hosting_provider=get_hosting_provider().name,
    )

    yield

    # Shutdown
    logger.info("application.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="NetPad Deploy API",
        description="Creates, bundles and publishes NetPad applications to hosting providers",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers
    @app.exception_handler(NetPadError)
    async def netpad_error_handler(request: Request, exc: NetPadError) -> JSONResponse:
        """Handle application-specific errors."""
        if exc.status_code >= 500:
            logger.error(
                "request.failed",
                path=request.url.path,
                error=exc.message,
                error_type=type(exc).__name__,
            )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed requests as 400 with one message per problem."""
        errors = [
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "validationErrors": errors},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

        if settings.is_development:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": str(exc), "type": type(exc).__name__},
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "An unexpected error occurred"},
        )

    # Include routers
    app.include_router(v1_router)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "netpad.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
