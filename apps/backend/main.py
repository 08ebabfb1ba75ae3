from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional
import os
import logging
import traceback

from app.config import Capabilities, ScraperSettings, SchedulerSettings, load_settings
from app.db_config import db_config
from app.scraper_routes import router as scraper_router
from core.net import RequestGovernor
from crawler.registry import build_adapters
from orchestrator import ScrapeOrchestrator
from pipeline.db_insert import DBInsert
from pipeline.store import JobStore, PostgresStore
from scheduler import ScrapeScheduler

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class IngestionServices:
    """Everything a running ingestion pipeline needs, owned by the app lifespan"""
    store: JobStore
    governor: RequestGovernor
    orchestrator: ScrapeOrchestrator
    scheduler: ScrapeScheduler


def build_ingestion(store: JobStore, scraper_settings: ScraperSettings,
                    scheduler_settings: SchedulerSettings) -> IngestionServices:
    governor = RequestGovernor(
        min_gap_s=scraper_settings.min_request_gap_ms / 1000,
        timeout_s=scraper_settings.request_timeout_s,
    )
    adapters = build_adapters(scraper_settings, governor)
    orchestrator = ScrapeOrchestrator(scraper_settings, store, adapters, persister=DBInsert(store))
    scheduler = ScrapeScheduler(orchestrator, store, scheduler_settings)
    return IngestionServices(store=store, governor=governor, orchestrator=orchestrator, scheduler=scheduler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application lifecycle events."""
    env = os.getenv("JOBINGEST_ENV", "production").lower()
    if env == "dev":
        logger.info("[jobingest] env: JOBINGEST_ENV=dev (admin routes enabled)")
    else:
        logger.info(f"[jobingest] env: JOBINGEST_ENV={env} (admin routes disabled)")

    ingestion: Optional[IngestionServices] = None
    scraper_settings, scheduler_settings = load_settings()

    if db_config.is_db_enabled:
        store = PostgresStore(db_config.database_url)
        try:
            store.ensure_schema()
            ingestion = build_ingestion(store, scraper_settings, scheduler_settings)
        except Exception as e:
            logger.error(f"[jobingest] Failed to initialise ingestion: {e}")
    else:
        logger.warning("[jobingest] No DATABASE_URL configured, scheduler not started")

    app.state.ingestion = ingestion
    if ingestion and scheduler_settings.auto_start:
        await ingestion.scheduler.start()

    yield

    # Shutdown
    if ingestion:
        await ingestion.scheduler.stop()
        await ingestion.governor.aclose()


app = FastAPI(title="Job Ingestion API", version="0.1.0", lifespan=lifespan)


# Error masking middleware
@app.middleware("http")
async def error_masking_middleware(request: Request, call_next):
    """Mask detailed errors in production; show full errors in dev."""
    try:
        response = await call_next(request)
        return response
    except HTTPException:
        raise
    except Exception as e:
        is_dev = os.getenv("JOBINGEST_ENV", "").lower() == "dev"

        logger.error(f"Unhandled error: {str(e)}")
        if is_dev:
            logger.error(traceback.format_exc())
            return JSONResponse(
                status_code=500,
                content={
                    "status": "error",
                    "error": str(e),
                    "traceback": traceback.format_exc()
                }
            )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": "An internal error occurred. Please try again later."
            }
        )


app.include_router(scraper_router)


@app.get("/api/healthz")
async def healthz():
    return {
        "status": "ok",
        "db_configured": Capabilities.is_db_enabled(),
        "db_ok": Capabilities.check_db_connection(),
        "ingestion_ready": getattr(app.state, "ingestion", None) is not None,
    }
