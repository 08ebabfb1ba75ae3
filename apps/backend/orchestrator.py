"""
Ingestion run orchestrator: fetch from every enabled source, filter, persist.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

import metrics
from app.config import ScraperSettings
from core.net import RateLimited
from crawler.base import SourceAdapter
from pipeline.db_insert import DBInsert
from pipeline.filters import JobFilter
from pipeline.models import PersistOutcome, RunResult, ScrapedJob, utcnow
from pipeline.store import JobStore

logger = logging.getLogger(__name__)


def _skip_metric_reason(outcome: PersistOutcome) -> str:
    if outcome.reason and outcome.reason.startswith("invalid company name"):
        return "invalid_company"
    return "duplicate"


class ScrapeOrchestrator:
    """
    Runs one ingestion pass.

    Adapters are fetched concurrently and awaited together; a failing adapter
    contributes zero jobs and one error string and never cancels the others.
    Persistence is sequential.
    """

    def __init__(
        self,
        settings: ScraperSettings,
        store: JobStore,
        adapters: List[SourceAdapter],
        persister: Optional[DBInsert] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.store = store
        self.adapters = adapters
        self.persister = persister or DBInsert(store, clock=clock)
        self.clock = clock
        self._run_lock = asyncio.Lock()
        self.last_result: Optional[RunResult] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def update_config(self, settings: ScraperSettings, adapters: Optional[List[SourceAdapter]] = None):
        """Swap in new settings (and the adapters built from them) for the next run"""
        self.settings = settings
        if adapters is not None:
            self.adapters = adapters
        logger.info(
            f"[orchestrator] Configuration updated: {len(self.adapters)} sources, "
            f"max {settings.max_jobs_per_run} jobs per run"
        )

    async def run(self) -> RunResult:
        """Run one full fetch -> filter -> persist pass. Never raises."""
        async with self._run_lock:
            result = RunResult(started_at=self.clock())
            started = time.monotonic()
            try:
                if not self.settings.enabled:
                    logger.info("[orchestrator] Job scraping is disabled")
                    result.success = False
                    result.errors.append("Job scraping is disabled")
                else:
                    await self._run(result)
            except Exception as e:
                logger.error(f"[orchestrator] Run failed: {e}", exc_info=True)
                result.success = False
                result.errors.append(f"Process failed: {e}")
            finally:
                result.finished_at = self.clock()
                result.duration_seconds = round(time.monotonic() - started, 3)

            metrics.observe_run(result.success, result.duration_seconds)
            logger.info(
                f"[orchestrator] Run finished in {result.duration_seconds:.1f}s: "
                f"{result.jobs_added} added, {result.jobs_skipped} skipped, {result.jobs_failed} failed, "
                f"{len(result.errors)} errors"
            )
            self.last_result = result
            return result

    async def _run(self, result: RunResult):
        existing_ids: Set[str] = await asyncio.to_thread(
            self.store.load_recent_external_ids, self.settings.history_days
        )
        logger.info(f"[orchestrator] Loaded {len(existing_ids)} existing external ids")

        scraped = await self.fetch_all(result)
        result.total_scraped = len(scraped)
        logger.info(f"[orchestrator] Scraped {len(scraped)} jobs: {result.per_source_counts}")

        job_filter = JobFilter(
            exclude_keywords=self.settings.exclude_keywords,
            exclude_companies=self.settings.exclude_companies,
            min_description_length=self.settings.min_description_length,
        )
        filtered = job_filter.apply(scraped, existing_ids)
        for reason, count in job_filter.rejections.items():
            metrics.incr_skipped(reason, count)
        result.jobs_after_filter = len(filtered)

        to_insert = filtered[: self.settings.max_jobs_per_run]
        logger.info(f"[orchestrator] {len(filtered)} jobs after filtering, inserting {len(to_insert)}")

        for index, job in enumerate(to_insert, start=1):
            outcome = await asyncio.to_thread(self.persister.persist, job)
            self._tally(result, outcome)
            if index % 25 == 0:
                logger.info(f"[orchestrator] Progress: {index}/{len(to_insert)} jobs processed")

    async def fetch_all(self, result: RunResult) -> List[ScrapedJob]:
        """Fetch every adapter concurrently; record per-source counts and errors"""
        outcomes = await asyncio.gather(
            *(self._fetch_one(adapter) for adapter in self.adapters),
        )

        jobs: List[ScrapedJob] = []
        for adapter, (source_jobs, error) in zip(self.adapters, outcomes):
            result.per_source_counts[adapter.display_name] = len(source_jobs)
            metrics.incr_source_jobs(adapter.display_name, len(source_jobs))
            if error:
                result.errors.append(error)
            jobs.extend(source_jobs)
        return jobs

    async def _fetch_one(self, adapter: SourceAdapter) -> Tuple[List[ScrapedJob], Optional[str]]:
        try:
            jobs = await adapter.fetch()
        except RateLimited as e:
            logger.warning(f"[orchestrator] {adapter.display_name} rate limited ({e}), dropping source for this run")
            metrics.incr_rate_limited(adapter.display_name)
            return [], f"{adapter.display_name}: rate limited"
        except Exception as e:
            logger.error(f"[orchestrator] {adapter.display_name} failed: {e}")
            return [], f"{adapter.display_name}: {e}"
        return list(jobs[: adapter.max_jobs]), None

    @staticmethod
    def _tally(result: RunResult, outcome: PersistOutcome):
        if outcome.status == PersistOutcome.INSERTED:
            result.jobs_added += 1
            metrics.incr_inserted()
        elif outcome.status == PersistOutcome.SKIPPED:
            result.jobs_skipped += 1
            metrics.incr_skipped(_skip_metric_reason(outcome))
        else:
            result.jobs_failed += 1
            metrics.incr_failed()
            result.errors.append(f"Insert failed for {outcome.external_id}: {outcome.error}")
