"""FastAPI application entry point"""
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from feedvault.config import settings
from feedvault.database import database
from feedvault.scheduler import setup_scheduler, start_scheduler, shutdown_scheduler
from feedvault.routes import articles, sources, jobs, stats

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""

    # Startup
    logger.info("Starting FeedVault...")

    # Connect to storage and build services
    await database.connect()

    # Setup and start scheduler
    setup_scheduler()
    start_scheduler()

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")

    # Stop scheduler
    shutdown_scheduler()

    # Disconnect from storage
    await database.disconnect()

    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="FeedVault",
    description="Syndication feed ingestion into a deduplicated, time-partitioned article store",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(articles.router)
app.include_router(sources.router)
app.include_router(jobs.router)
app.include_router(stats.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "feedvault",
        "version": "1.0.0",
        "storageMode": settings.storage_mode
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
