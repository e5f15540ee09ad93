"""FastAPI application entry point."""

import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from impact_blog import __version__
from impact_blog.api import api_router
from impact_blog.api.forms import format_validation_errors
from impact_blog.config import get_settings
from impact_blog.schemas.common import ErrorResponse
from impact_blog.services.errors import AuthenticationError, BlogError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - runs on startup and shutdown."""
    # Startup
    logger.info("Starting %s v%s", settings.app_name, __version__)
    logger.info("Environment: %s (debug=%s)", settings.environment, settings.debug)
    logger.info("Database: %s", settings.database_url.split("://")[0])  # Hide path details
    logger.info("Uploads: %s served at %s", settings.upload_dir, settings.uploads_url_prefix)

    # Validate and log warnings
    warnings = settings.validate_runtime_config()
    if warnings:
        logger.warning("Configuration warnings:")
        for warning in warnings:
            logger.warning("  - %s", warning)
    else:
        logger.info("Configuration validation passed - no warnings")

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_content(message: str, exc: Exception) -> dict:
    """Build the error envelope; the traceback is omitted in production."""
    stack = None if settings.is_production else "".join(traceback.format_exception(exc))
    return ErrorResponse(message=message, stack=stack).model_dump(exclude_none=True)


@app.exception_handler(BlogError)
async def blog_error_handler(_request: Request, exc: BlogError) -> JSONResponse:
    """Handle application errors globally."""
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(exc.message, exc),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed requests as validation errors."""
    return JSONResponse(
        status_code=400,
        content=error_content(format_validation_errors(exc.errors()), exc),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(str(exc.detail), exc),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for unexpected failures."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_content("Server Error", exc))


# Include API router
app.include_router(api_router)

# Serve uploaded files
app.mount(
    settings.uploads_url_prefix,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/")
async def root() -> dict[str, str]:
    """Welcome message."""
    return {"message": "Welcome to the Impact Blog API"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the API is running."""
    return {"status": "healthy", "version": __version__}
