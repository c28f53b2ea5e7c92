"""
TradeJournal - FastAPI Application
Main entry point with proper lifecycle management.

Request flow:
    api/routes (thin HTTP layer)
        ↓
    RuleLifecycleService / RuleHistoryService (ActionResult boundary)
        ↓
    Repositories (rules, versions, history)
        ↓
    Async SQLAlchemy session (one transaction per operation)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from tradejournal.core.config import settings
from tradejournal.core.logging import setup_logging
from tradejournal.db.session import DatabaseService, close_db, init_db
from tradejournal.api import api_router
from tradejournal.api.docs import openapi_config


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------
    setup_logging()
    logger.info("=" * 60)
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug Mode: {settings.DEBUG}")
    logger.info("=" * 60)

    db_service = DatabaseService()
    if settings.DB_AUTO_CREATE:
        await init_db()
        logger.info("✓ Database tables ensured")

    if await db_service.health_check():
        logger.info("✓ Database connection established")
    else:
        logger.warning("⚠ Database connection failed - rule operations will report persistence errors")

    logger.info("-" * 60)
    logger.info("TradeJournal API ready to accept requests")
    logger.info("-" * 60)

    yield

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------
    logger.info("=" * 60)
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")
    await close_db()
    logger.info("✓ Database connections closed")
    logger.info("=" * 60)


# =============================================================================
# Application Factory
# =============================================================================

def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    application = FastAPI(
        title=openapi_config["title"],
        version=openapi_config["version"],
        description=openapi_config["description"],
        license_info=openapi_config["license_info"],
        openapi_tags=openapi_config["openapi_tags"],
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # CORS Configuration
    origins = list(settings.api.cors_origins)

    # Add production origins if configured
    if settings.ALLOWED_ORIGINS:
        origins.extend(settings.ALLOWED_ORIGINS)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    application.include_router(api_router, prefix=settings.API_PREFIX)

    # -------------------------------------------------------------------------
    # Health & Info Endpoints
    # -------------------------------------------------------------------------

    @application.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint for load balancers and monitoring.
        """
        db_healthy = await DatabaseService().health_check()
        return {
            "status": "healthy" if db_healthy else "degraded",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": "connected" if db_healthy else "disconnected",
        }

    @application.get("/", tags=["Health"])
    async def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": f"Welcome to {settings.PROJECT_NAME} API",
            "version": settings.APP_VERSION,
            "docs": "/docs" if settings.DEBUG else "Disabled in production",
            "health": "/health",
        }

    return application


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tradejournal.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.is_development,
    )
