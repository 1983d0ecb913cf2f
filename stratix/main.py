from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from stratix.core import settings, setup_logging, get_logger
from stratix.core.environment import ensure_environment
from stratix.exceptions import (
    AppException,
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    request_validation_handler,
)
from stratix.api import api_router
from stratix.db import Base, engine
from stratix.testing import configure_test_overrides, is_test_mode

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("Starting up Stratix OKR API")

    if settings.environment == "production":
        ensure_environment()

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    yield

    # Shutdown
    logger.info("Shutting down Stratix OKR API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=settings.api_description,
        lifespan=lifespan
    )

    cors_origins = settings.cors_origins
    if settings.environment == "production":
        localhost_origins = [origin for origin in cors_origins if "localhost" in origin or "127.0.0.1" in origin]
        if localhost_origins:
            logger.warning(f"Production environment detected with localhost origins: {localhost_origins}")

    logger.info(f"CORS allowed origins: {cors_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,         # session cookie
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router)

    # Isolated SQLite database and header-based auth for the test suite
    if is_test_mode():
        configure_test_overrides(app)

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"status": "ok", "message": "Stratix OKR API is running"}

    @app.get("/healthz")
    async def healthz():
        """Production health check endpoint."""
        return {"status": "ok"}

    return app


# Create the app instance
app = create_app()
