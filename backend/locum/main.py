"""
FastAPI application entry point for the Locum lifecycle service.

- Initializes FastAPI with CORS
- Registers the lifecycle and notification routers
- Provides health check endpoint
- Disposes the database engine on shutdown
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from locum.config import settings
from locum.database import engine
from locum.api import applications, jobs, verifications, invitations, notifications

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup; close database connections on shutdown."""
    logger.info("Starting Locum API...")
    logger.info(f"Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'configured'}")
    logger.info(f"Email mode: {settings.email_mode}, debug: {settings.debug}")
    
    yield
    
    logger.info("Shutting down Locum API...")
    await engine.dispose()


app = FastAPI(
    title="Locum API",
    description="Lifecycle and notification engine for locum staffing",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Set ALLOWED_ORIGINS with comma-separated domains for production
allowed_origins = [settings.frontend_url]
if settings.allowed_origins:
    allowed_origins.extend(origin.strip() for origin in settings.allowed_origins.split(','))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {
        "status": "healthy",
        "service": "Locum API",
        "version": "1.0.0",
    }


app.include_router(applications.router, prefix="/api/applications", tags=["applications"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(verifications.router, prefix="/api/verifications", tags=["verifications"])
app.include_router(invitations.router, prefix="/api/invitations", tags=["invitations"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
