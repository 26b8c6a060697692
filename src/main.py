"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator

from src.config import settings
from src.api.routes import scrapes
from src.crawler.sites import SiteRegistry

# Configure structured logging
from src.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting catalog crawler (sites: {', '.join(SiteRegistry.list_sites())})")

    yield

    logger.info("Shutting down...")
    running = [
        run for run in scrapes.runs.values()
        if run.status == "running" and run.scheduler is not None
    ]
    for run in running:
        await run.scheduler.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Catalog Crawler",
    description="Crawl retail listing pages into catalog product records",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(scrapes.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
