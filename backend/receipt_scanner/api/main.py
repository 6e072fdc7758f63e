"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes the receipt router and
sets up startup and shutdown events. When run with uvicorn it
initialises the database, the image storage and the extraction chain,
and loads configuration from ``receipt_scanner.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from receipt_scanner.api.error_handlers import generic_exception_handler, validation_exception_handler
from receipt_scanner.api.routes.receipts import router as receipts_router
from receipt_scanner.core.config import settings
from receipt_scanner.core.database import init_db
from receipt_scanner.core.observability import init_sentry
from receipt_scanner.services.extraction_service import ExtractionService
from receipt_scanner.services.storage_service import StorageService

try:  # optional import for typing / scope usage
    import sentry_sdk  # type: ignore
except Exception:  # pragma: no cover
    sentry_sdk = None  # type: ignore

# Configure logging
logging.basicConfig(level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    app.state.storage = StorageService()
    app.state.extraction = ExtractionService.from_settings(settings)
    logger.info("Extraction backends: %s", ", ".join(app.state.extraction.backend_names) or "(local only)")
    yield
    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def sentry_context_middleware(request: Request, call_next):  # type: ignore
    if sentry_sdk and settings.SENTRY_DSN:
        scope = sentry_sdk.get_current_scope()
        scope.set_tag("path", request.url.path)
        scope.set_tag("method", request.method)
    return await call_next(request)


# Development allows every origin; elsewhere only the configured list
env_is_dev = (settings.ENVIRONMENT or "development").lower() == "development"
allow_origins = ["*"] if env_is_dev else list(dict.fromkeys(settings.BACKEND_CORS_ORIGINS or []))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=not env_is_dev,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(receipts_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


@app.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """Liveness probe (supports GET & HEAD)."""
    return {"status": "healthy"}


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("receipt_scanner.api.main:app", host="0.0.0.0", port=settings.PORT)
