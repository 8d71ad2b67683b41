"""
SpaceShare Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers.
Who:   uvicorn (uvicorn spaceshare.main:app) and the HTTP tests.

Application Layout:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Logging → GZip → CORS    │
    │                                                     │
    │  Routes:                                            │
    │    /api/users   /api/places   /api/rockets          │
    │    /uploads/{path}            /health               │
    │                                                     │
    │  Exception Handlers → {message, status, errors}     │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging, configuration check, storage directory
    Shutdown:  dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from spaceshare import __version__
from spaceshare.config import settings
from spaceshare.database import dispose_engine
from spaceshare.exceptions import SpaceShareError, ValidationError
from spaceshare.middleware.logging import RequestLoggingMiddleware
from spaceshare.middleware.request_id import RequestIDMiddleware, request_id_var
from spaceshare.routes import health, uploads, users
from spaceshare.routes.listings import places_router, rockets_router

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Could not load the content you wanna see"
UNEXPECTED_MESSAGE = "Sorry, an unknown error occurred, we are already fixing it!"


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure the root logger once, at startup."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("SpaceShare Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving; the default secret still signs valid tokens
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("SpaceShare Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(status: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"message": message, "status": status, "errors": errors or []},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Every error leaves as {"message", "status", "errors"}.

        SpaceShareError          → its own status (422/401/403/404/500)
        RequestValidationError   → 422, one entry per bad parameter
        HTTPException            → its status; unmatched routes get the 404 text
        Exception                → 500, generic message, stack trace logged

    Internal details (SQL, paths, stack traces) are only ever logged.
    """

    @app.exception_handler(SpaceShareError)
    async def handle_app_error(request: Request, exc: SpaceShareError):
        rid = request_id_var.get("")
        if exc.status >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return error_response(exc.status, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part not in ("query", "path", "body")),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return error_response(422, ValidationError.default_message, errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = NOT_FOUND_MESSAGE if exc.status_code == 404 else str(exc.detail)
        return error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return error_response(500, UNEXPECTED_MESSAGE)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="SpaceShare API",
        description="Share places and rockets, like what others share, browse ranked feeds.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Executed in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(places_router)
    app.include_router(rockets_router)
    app.include_router(uploads.router)
    app.include_router(health.router)

    return app


app = create_app()
