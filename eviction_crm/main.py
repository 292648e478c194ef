"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eviction_crm.api.v1.router import api_router
from eviction_crm.core.config import settings
from eviction_crm.models.database import close_db, init_db
from eviction_crm.observability.logging import get_logger, setup_logging
from eviction_crm.observability.metrics import metrics
from eviction_crm.services.ops import get_ops_services, shutdown_ops_services

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION} ({settings.APP_ENV})")

    ops = get_ops_services()

    # Report configuration problems early; /init decides whether they are fatal
    validation = ops.env_validator.validate_environment()
    if not validation.valid:
        logger.warning(f"Starting with {len(validation.errors)} environment problems")

    # Initialize database connection pool
    await init_db()
    logger.info("Database engine initialized")

    # Set application info metrics
    metrics.set_app_info(version=settings.APP_VERSION, environment=settings.APP_ENV)
    logger.info(f"Auth mode: {settings.AUTH_MODE}")

    yield

    # Shutdown
    logger.info("Shutting down...")

    # Stop the email retry loop
    await shutdown_ops_services()
    logger.info("Operational services stopped")

    # Close database connections
    await close_db()
    logger.info("Database connections closed")

    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description="Operational core of the Proactive Eviction CRM: error recovery, "
    "email dispatch and deployment tracking",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/v1/health",
        "ready": "/api/v1/ready",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "eviction_crm.main:app",
        host="0.0.0.0",
        port=3000,
        reload=settings.DEBUG,
    )
