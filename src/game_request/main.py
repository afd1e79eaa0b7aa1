"""GameRequest Service

Main FastAPI application entry point.
"""

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from game_request.api.routes import auth, cache, health, integrations, setup, watchlist
from game_request.config.settings import Settings, get_settings
from game_request.core.auth.factory import create_provider
from game_request.core.auth.manager import AuthManager
from game_request.core.auth.registry import AuthConfig
from game_request.core.auth.session import SessionTokenService
from game_request.core.cache.facade import CacheFacade
from game_request.core.cache.factory import create_cache
from game_request.infrastructure.database.connection import Database

logger = logging.getLogger(__name__)


async def _cache_cleanup_loop(cache: CacheFacade, interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await cache.cleanup_expired()
            if removed:
                logger.debug(f"Cache cleanup removed {removed} expired entries")
        except Exception as e:
            logger.error(f"Cache cleanup failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings: Settings = app.state.settings

    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    database = Database(settings.database_url, echo=settings.sql_echo)
    if settings.database_init_schema:
        await database.init_schema()
        logger.info("Database schema ensured")

    cache_facade = await create_cache(settings)
    logger.info(f"Cache backend: {cache_facade.backend_name}")

    session_tokens = SessionTokenService(settings.session_secret, ttl_seconds=settings.session_ttl_seconds)
    auth_manager = AuthManager(
        AuthConfig.from_settings(settings),
        functools.partial(create_provider, session_factory=database.session_factory),
        session_tokens,
        cache_facade,
        session_cache_ttl=settings.session_cache_ttl_seconds,
    )
    try:
        await auth_manager.initialize()
    except Exception as e:
        logger.error(f"Failed to initialize authentication provider: {e}")
        await cache_facade.close()
        await database.close()
        raise

    if settings.enable_auto_sync:
        auth_manager.start_user_sync(settings.sync_interval_seconds)

    cleanup_task = asyncio.create_task(
        _cache_cleanup_loop(cache_facade, settings.cache_cleanup_interval_seconds)
    )

    app.state.database = database
    app.state.cache = cache_facade
    app.state.auth_manager = auth_manager

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.service_name}")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await auth_manager.close()
    await cache_facade.close()
    await database.close()
    logger.info("Connections closed")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application

    Args:
        settings: Settings to run with; read from the environment when omitted
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(
        title="GameRequest Service",
        version=settings.service_version,
        description="Game request backend with pluggable authentication providers",
        lifespan=lifespan
    )
    app.state.settings = settings

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(integrations.router)
    app.include_router(cache.router)
    app.include_router(watchlist.router)
    app.include_router(setup.router)

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "service": settings.service_name,
            "version": settings.service_version,
            "docs": "/docs",
            "health": "/health"
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "An unexpected error occurred. Please try again later."
            }
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "game_request.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
