"""Scrape execution API endpoints."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel, Field

from src.config import settings
from src.crawler.browser import BrowserLaunchError
from src.crawler.runner import build_scheduler, default_options
from src.crawler.scheduler import CrawlConfigError, CrawlScheduler
from src.crawler.sites import SiteRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scrapes", tags=["scrapes"])

RECENT_EVENTS = 50


@dataclass
class ScrapeRun:
    """In-process record of one execution."""

    execution_id: str
    site: str
    start_urls: list[str]
    scheduler: Optional[CrawlScheduler]
    status: str = "pending"
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    products_collected: int = 0
    summary: dict[str, Any] = field(default_factory=dict)
    recent_events: list[dict[str, Any]] = field(default_factory=list)

    def release(self) -> None:
        """Snapshot the counters of a finished run and drop the scheduler."""
        if self.scheduler is None:
            return
        self.products_collected = len(self.scheduler.sink)
        self.summary = self.scheduler.summary.to_dict()
        self.recent_events = list(self.scheduler.log_sink.events)[-RECENT_EVENTS:]
        self.scheduler = None


# execution_id -> ScrapeRun
runs: dict[str, ScrapeRun] = {}


def prune_finished_runs() -> None:
    """Forget the oldest finished executions beyond ``max_tracked_scrapes``."""
    finished = sorted(
        (run for run in runs.values() if run.finished_at is not None),
        key=lambda r: r.finished_at,
    )
    excess = len(finished) - settings.max_tracked_scrapes
    for run in finished[:max(excess, 0)]:
        runs.pop(run.execution_id, None)


# Request/response models
class ScrapeRequest(BaseModel):
    """Request model for starting a scrape."""
    site: str = "italist"
    start_urls: List[str] = Field(..., min_length=1)
    max_products: Optional[int] = Field(None, gt=0)
    max_concurrency: Optional[int] = Field(None, gt=0)
    max_requests: Optional[int] = Field(None, gt=0)
    headless: Optional[bool] = None
    max_load_clicks: Optional[int] = Field(None, gt=0)
    execution_id: Optional[str] = None


class ScrapeAccepted(BaseModel):
    execution_id: str
    status: str


class ScrapeStatusResponse(BaseModel):
    """Response model for execution status."""
    execution_id: str
    site: str
    status: str
    start_urls: List[str]
    products_collected: int
    summary: dict[str, Any]
    error: Optional[str]
    created_at: datetime
    finished_at: Optional[datetime]
    recent_events: List[dict[str, Any]] = []


def _to_status(run: ScrapeRun, include_events: bool = False) -> ScrapeStatusResponse:
    scheduler = run.scheduler
    if scheduler is not None:
        products_collected = len(scheduler.sink)
        summary = scheduler.summary.to_dict()
        events = list(scheduler.log_sink.events)[-RECENT_EVENTS:]
    else:
        products_collected = run.products_collected
        summary = run.summary
        events = run.recent_events
    return ScrapeStatusResponse(
        execution_id=run.execution_id,
        site=run.site,
        status=run.status,
        start_urls=run.start_urls,
        products_collected=products_collected,
        summary=summary,
        error=run.error,
        created_at=run.created_at,
        finished_at=run.finished_at,
        recent_events=events if include_events else [],
    )


async def execute_run(run: ScrapeRun) -> None:
    """Background task body: run the crawl and record the outcome."""
    run.status = "running"
    try:
        products = await run.scheduler.run(run.start_urls)
        run.status = "completed"
        logger.info(f"Scrape {run.execution_id} completed with {len(products)} products")
    except (BrowserLaunchError, CrawlConfigError) as e:
        run.status = "failed"
        run.error = str(e)
        logger.error(f"Scrape {run.execution_id} failed: {e}")
    except Exception as e:
        run.status = "failed"
        run.error = f"{type(e).__name__}: {e}"
        logger.exception(f"Scrape {run.execution_id} crashed")
    finally:
        run.finished_at = datetime.now(timezone.utc)
        run.release()
        prune_finished_runs()


@router.post("", response_model=ScrapeAccepted, status_code=202)
async def start_scrape(request: ScrapeRequest, background_tasks: BackgroundTasks):
    """Start a crawl in the background."""
    if request.site.strip().lower() not in SiteRegistry.list_sites():
        raise HTTPException(status_code=404, detail=f"Unknown site: {request.site}")

    execution_id = request.execution_id or uuid4().hex
    if execution_id in runs and runs[execution_id].status in ("pending", "running"):
        raise HTTPException(status_code=409, detail="Execution already running")

    options = default_options(
        max_products=request.max_products,
        max_concurrency=request.max_concurrency,
        max_requests=request.max_requests,
        headless=request.headless,
        max_load_clicks=request.max_load_clicks,
    )
    try:
        scheduler = build_scheduler(request.site, options, execution_id)
    except CrawlConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))

    run = ScrapeRun(
        execution_id=execution_id,
        site=scheduler.site,
        start_urls=request.start_urls,
        scheduler=scheduler,
    )
    runs[execution_id] = run
    background_tasks.add_task(execute_run, run)

    return ScrapeAccepted(execution_id=execution_id, status=run.status)


@router.get("", response_model=List[ScrapeStatusResponse])
async def list_scrapes():
    """List known executions, newest first."""
    ordered = sorted(runs.values(), key=lambda r: r.created_at, reverse=True)
    return [_to_status(run) for run in ordered]


@router.get("/{execution_id}", response_model=ScrapeStatusResponse)
async def get_scrape(execution_id: str):
    """Status, counters and recent log events of one execution."""
    run = runs.get(execution_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return _to_status(run, include_events=True)
