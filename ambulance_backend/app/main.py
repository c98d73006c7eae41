"""
FastAPI Application Entry Point.

This is the main application file for the Ambulance Dispatch Backend.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from ambulance_backend.app.core.config import settings
from ambulance_backend.app.api.v1.router import router as api_v1_router
from ambulance_backend.app.core.change_feed import change_feed, stop_relay
from ambulance_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from ambulance_backend.app.core.redis_client import redis_client, ping_redis
from ambulance_backend.app.db.session import engine, Base
from ambulance_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from ambulance_backend.app.models.user import User
from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.audit_log import AuditLog

logger = logging.getLogger("ambulance_dispatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Creates database tables on startup.
    2. Binds the change feed to Redis and starts the relay when enabled.
    3. Stops the relay on shutdown.
    """
    configure_logging(settings.log_level)
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    relay_task = None
    if settings.change_feed_use_redis:
        change_feed.bind(redis_client)
        relay_task = asyncio.create_task(change_feed.relay())
        logger.info("Change feed relayed through Redis channel %s", settings.change_feed_channel)
    
    yield
    
    try:
        if relay_task is not None:
            await stop_relay(relay_task)
    finally:
        await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Driver and ambulance assignment service for hospital dispatch",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": (await ping_redis()) if settings.change_feed_use_redis else "disabled",
        "live_subscribers": change_feed.subscriber_count,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.
    
    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Ambulance Dispatch Backend API",
        "docs": "/docs",
        "health": "/health",
    }
