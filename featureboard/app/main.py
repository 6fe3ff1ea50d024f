"""FastAPI application — the main entrypoint for Featureboard."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from featureboard.app.api.boards import router as boards_router
from featureboard.app.api.comments import router as comments_router
from featureboard.app.api.dashboard import router as dashboard_router
from featureboard.app.api.feature_requests import board_requests_router
from featureboard.app.api.feature_requests import router as feature_requests_router
from featureboard.app.api.users import router as users_router
from featureboard.app.config import Settings, settings
from featureboard.app.db import Database
from featureboard.app.errors import error_response
from featureboard.app.services.identity import TrustedHeaderIdentityProvider
from featureboard.app.services.invalidation import CacheInvalidator
from featureboard.app.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

# Configure logging for our app modules so INFO/DEBUG logs are visible.
# Uvicorn's log_level="info" only affects its own logger, not ours.
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(levelname)s:%(name)s: %(message)s",
)
logging.getLogger("featureboard").setLevel(logging.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    database: Database = app.state.database
    await database.create_all()
    logger.info("Database ready at %s", database.url)
    yield
    # Shutdown
    app.state.response_cache.clear()
    await database.dispose()


def create_app(config: Settings | None = None) -> FastAPI:
    """Build the application with its store, response cache and identity provider."""
    config = config or settings

    app = FastAPI(
        title="Featureboard",
        description="Feedback boards: feature requests, upvotes and comments",
        version="0.1.0",
        lifespan=lifespan,
    )

    response_cache = ResponseCache(
        max_entries=config.cache_max_entries, ttl_seconds=config.cache_ttl_seconds
    )
    app.state.settings = config
    app.state.database = Database.from_settings(config)
    app.state.response_cache = response_cache
    app.state.invalidator = CacheInvalidator(response_cache)
    app.state.identity_provider = TrustedHeaderIdentityProvider(config.identity_header_prefix)

    # allow_origins=["*"] + allow_credentials=True is rejected by browsers,
    # so we always use an explicit origin list.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return error_response(400, f"{field}: {message}" if field else message)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch unhandled exceptions and return a clean JSON 500 instead of a stack trace."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error")

    # Include routers
    app.include_router(boards_router, prefix="/api")
    app.include_router(board_requests_router, prefix="/api")
    app.include_router(feature_requests_router, prefix="/api")
    app.include_router(comments_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")
    app.include_router(users_router, prefix="/api")

    # --- Health check ---

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        """Health check with DB connectivity verification."""
        db_ok = "ok"
        try:
            await app.state.database.ping()
        except Exception:
            db_ok = "error"
            logger.exception("Health check: database connectivity failed")

        stats = app.state.response_cache.stats()
        return {
            "status": "ok" if db_ok == "ok" else "degraded",
            "database": db_ok,
            "cache_entries": str(stats.total_entries),
        }

    return app


app = create_app()
