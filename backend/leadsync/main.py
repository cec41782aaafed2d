"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from leadsync import __version__
from leadsync.config import settings
from leadsync.database import Base, init_db
from leadsync.routers import social_media_routes, webhook_routes
from leadsync.scheduler import shutdown_scheduler, start_scheduler
from leadsync.services.integration_orchestrator import IntegrationState

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Venue CRM Lead Sync API",
    description="Social media lead capture, interaction sync and lead heat scoring",
    version=__version__,
    redirect_slashes=False,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your frontend domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.integration = IntegrationState()

# ============================================
# ROUTER REGISTRATION
# ============================================
app.include_router(social_media_routes.router)
app.include_router(webhook_routes.router)


# ============================================
# HEALTH & ROOT ENDPOINTS
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    state: IntegrationState = app.state.integration
    return {
        "status": "healthy",
        "version": __version__,
        "registered_tables": list(Base.metadata.tables.keys()),
        "integration_configured": state.is_configured,
        "rate_limits": state.rate_limiters.get_stats(),
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Venue CRM Lead Sync API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("Starting Venue CRM Lead Sync API...")
    init_db()
    logger.info(f"Registered {len(Base.metadata.tables)} SQLAlchemy tables")

    config = settings.build_social_media_config()
    if config is not None:
        app.state.integration.config = config
        logger.info(
            f"Social media integration configured from environment: "
            f"{[platform.value for platform in config.configured_platforms()]}"
        )
    else:
        logger.info("No platform credentials in environment; waiting for POST /api/v1/social-media/configure")

    start_scheduler(app.state.integration)
    logger.info("Application started successfully!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Venue CRM Lead Sync API...")
    shutdown_scheduler()
