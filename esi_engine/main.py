"""FastAPI application entry point.

Host application with the ESI middleware installed, shared fragment
client lifecycle, and error handling.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from esi_engine.api.middleware import EsiMiddleware
from esi_engine.core.config import Settings, get_settings
from esi_engine.core.factory import ComponentFactory
from esi_engine.core.logging_config import setup_logging
from esi_engine.interfaces.errors import EsiError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Closes the shared fragment client on shutdown.
    """
    logger.info("Starting ESI engine host...")

    yield

    logger.info("Shutting down ESI engine host...")

    try:
        await app.state.esi_factory.aclose()
    except Exception as e:
        logger.error(f"Error closing fragment fetcher: {e}", exc_info=True)


def create_app(
    settings: Settings | None = None,
    factory: ComponentFactory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings. If None, loads from environment.
        factory: Optional component factory. If None, one is built from
            the settings.

    Returns:
        Configured FastAPI application instance.
    """
    try:
        settings = settings or get_settings()
        setup_logging(settings)
        factory = factory or ComponentFactory(settings)

        app = FastAPI(
            title="ESI Engine",
            description="Edge Side Include resolution for HTML responses",
            version="0.1.0",
            lifespan=lifespan,
        )

        app.state.settings = settings
        app.state.esi_factory = factory
        app.state.esi_engine = factory.get_engine()
        app.state.esi_config = factory.get_config()

        config = app.state.esi_config
        app.add_middleware(
            EsiMiddleware,
            base_url=config.base_url,
            headers=config.headers,
            timeout=config.timeout,
            max_depth=config.max_depth,
            media_types=settings.html_media_types,
            engine=app.state.esi_engine,
        )

        @app.get("/health", tags=["health"])
        async def health_check():
            """Health check endpoint for load balancers and monitoring."""
            return {
                "status": "healthy",
                "service": "esi-engine",
                "version": "0.1.0",
            }

        @app.exception_handler(EsiError)
        async def esi_exception_handler(request: Request, exc: EsiError):
            """Turn a fatal ESI error into a gateway error, never partial output."""
            logger.error(f"ESI processing failed: {exc}", exc_info=True)
            return PlainTextResponse(
                "ESI processing failed",
                status_code=status.HTTP_502_BAD_GATEWAY,
            )

        @app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle uncaught exceptions."""
            logger.error(f"Unhandled exception: {exc}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "detail": "Internal server error",
                    "error_code": "INTERNAL_ERROR",
                },
            )

        logger.info("FastAPI application created successfully")
        return app

    except Exception as e:
        logger.error(f"Failed to create FastAPI app: {e}", exc_info=True)
        raise


def __getattr__(name: str):
    # Built on first access, for "uvicorn esi_engine.main:app"
    if name == "app":
        global app
        app = create_app()
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    import uvicorn

    try:
        settings = get_settings()
        logger.info("Starting uvicorn server on port 8000...")
        uvicorn.run(
            "esi_engine.main:app",
            host="0.0.0.0",
            port=8000,
            reload=True,
            log_level=settings.log_level.lower(),
        )
    except Exception as e:
        logger.error(f"Failed to start uvicorn: {e}", exc_info=True)
        raise
