"""
Admin API routes for the job ingestion scheduler
"""
import asyncio
import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field, ValidationError

import metrics
from app.config import ScraperSettings, SchedulerSettings
from crawler.registry import build_adapters

logger = logging.getLogger(__name__)


def require_dev_mode():
    """Dependency to gate dev-only admin routes."""
    env = os.getenv("JOBINGEST_ENV", "").lower()
    if env != "dev":
        raise HTTPException(status_code=403, detail="Admin routes only available in dev mode (JOBINGEST_ENV=dev)")


router = APIRouter(prefix="/admin/scraper", tags=["scraper"], dependencies=[Depends(require_dev_mode)])


def get_ingestion(request: Request):
    """The ingestion services built by the app lifespan, or 503 when the database is not configured"""
    ingestion = getattr(request.app.state, "ingestion", None)
    if ingestion is None:
        raise HTTPException(status_code=503, detail="Job ingestion is not configured. Set DATABASE_URL.")
    return ingestion


class ConfigUpdate(BaseModel):
    enabled: Optional[bool] = None
    max_jobs_per_run: Optional[int] = Field(default=None, gt=0)
    exclude_keywords: Optional[List[str]] = None
    exclude_companies: Optional[List[str]] = None
    interval_hours: Optional[float] = Field(default=None, gt=0)
    scheduler_enabled: Optional[bool] = None


@router.post("/run")
async def run_scraper(ingestion=Depends(get_ingestion)):
    """Run one ingestion pass now and record it like a scheduled run"""
    if ingestion.orchestrator.is_running:
        raise HTTPException(status_code=409, detail="A scraping run is already in progress")

    result = await ingestion.scheduler.run_once()
    return {"status": "ok", "data": result.to_dict()}


@router.get("/status")
async def scraper_status(ingestion=Depends(get_ingestion)):
    return {
        "status": "ok",
        "data": {
            "scheduler": ingestion.scheduler.status(),
            "metrics": metrics.get_metrics(),
        },
    }


@router.post("/start")
async def start_scheduler(ingestion=Depends(get_ingestion)):
    started = await ingestion.scheduler.start()
    return {
        "status": "ok",
        "message": "Scheduler started" if started else "Scheduler already running or disabled",
        "data": ingestion.scheduler.status(),
    }


@router.post("/stop")
async def stop_scheduler(ingestion=Depends(get_ingestion)):
    await ingestion.scheduler.stop()
    return {"status": "ok", "message": "Scheduler stopped", "data": ingestion.scheduler.status()}


@router.get("/config")
async def get_config(ingestion=Depends(get_ingestion)):
    return {
        "status": "ok",
        "data": {
            "scraper": ingestion.orchestrator.settings.public_dict(),
            "scheduler": ingestion.scheduler.settings.model_dump(),
        },
    }


@router.put("/config")
async def update_config(update: ConfigUpdate, ingestion=Depends(get_ingestion)):
    """Update run limits and the schedule. Takes effect from the next run."""
    changes = update.model_dump(exclude_none=True)
    scheduler_changes = {
        "interval_hours": changes.pop("interval_hours", None),
        "enabled": changes.pop("scheduler_enabled", None),
    }
    scheduler_changes = {k: v for k, v in scheduler_changes.items() if v is not None}

    try:
        if changes:
            scraper_settings = ScraperSettings.model_validate(
                {**ingestion.orchestrator.settings.model_dump(), **changes}
            )
            adapters = build_adapters(scraper_settings, ingestion.governor)
            ingestion.orchestrator.update_config(scraper_settings, adapters)
        if scheduler_changes:
            scheduler_settings = SchedulerSettings.model_validate(
                {**ingestion.scheduler.settings.model_dump(), **scheduler_changes}
            )
            await ingestion.scheduler.update_config(scheduler_settings)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return await get_config(ingestion)


@router.get("/stats")
async def scraping_stats(days: int = Query(7, ge=1, le=90), ingestion=Depends(get_ingestion)):
    stats = await asyncio.to_thread(ingestion.store.get_scraping_stats, days)
    return {"status": "ok", "data": stats}


@router.post("/cleanup")
async def cleanup_expired(ingestion=Depends(get_ingestion)):
    deleted = await asyncio.to_thread(ingestion.store.cleanup_expired_jobs)
    return {"status": "ok", "data": {"deleted": deleted}}


@router.get("/health")
async def scraper_health(ingestion=Depends(get_ingestion)):
    """Scheduler liveness plus the outcome of the most recent run"""
    last = ingestion.scheduler.last_result
    healthy = last is None or last.success
    return {
        "status": "ok" if healthy else "degraded",
        "data": {
            "scheduler_running": ingestion.scheduler.is_running,
            "sources": [adapter.display_name for adapter in ingestion.orchestrator.adapters],
            "last_run_success": last.success if last else None,
            "last_run_errors": last.errors[:5] if last else [],
        },
    }
