"""
Filter/dedup stage between scraping and persistence.
"""
import logging
from collections import Counter
from typing import Iterable, List, Optional, Set

from .models import COMPANY_MAX_LENGTH, TITLE_MAX_LENGTH, ScrapedJob

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
COMPANY_MIN_LENGTH = 2
DEFAULT_MIN_DESCRIPTION_LENGTH = 20


class JobFilter:
    """
    Drops already-ingested, excluded and low-quality jobs.

    A filter instance remembers every external id it has let through, so a
    second pass over its own output (or a duplicate later in the same batch)
    yields nothing. The caller's existing-id set is never modified. Use one
    instance per run.
    """

    def __init__(
        self,
        exclude_keywords: Optional[Iterable[str]] = None,
        exclude_companies: Optional[Iterable[str]] = None,
        min_description_length: int = DEFAULT_MIN_DESCRIPTION_LENGTH,
    ):
        self.exclude_keywords = [k.lower() for k in (exclude_keywords or []) if k and k.strip()]
        self.exclude_companies = {c.strip().lower() for c in (exclude_companies or []) if c and c.strip()}
        self.min_description_length = min_description_length
        self._emitted: Set[str] = set()
        self.rejections: Counter = Counter()

    def rejection_reason(self, job: ScrapedJob, existing_ids: Set[str]) -> Optional[str]:
        if not job.external_id:
            return "missing_external_id"
        if job.external_id in existing_ids or job.external_id in self._emitted:
            return "duplicate"

        content = f"{job.title} {job.description} {job.company}".lower()
        if any(keyword in content for keyword in self.exclude_keywords):
            return "excluded_keyword"
        if job.company.strip().lower() in self.exclude_companies:
            return "excluded_company"

        if not job.title or not TITLE_MIN_LENGTH <= len(job.title) <= TITLE_MAX_LENGTH:
            return "invalid_title"
        if not job.company or not COMPANY_MIN_LENGTH <= len(job.company) <= COMPANY_MAX_LENGTH:
            return "invalid_company"
        if len(job.description.strip()) < self.min_description_length:
            return "short_description"
        return None

    def apply(self, jobs: List[ScrapedJob], existing_ids: Set[str]) -> List[ScrapedJob]:
        kept = []
        for job in jobs:
            reason = self.rejection_reason(job, existing_ids)
            if reason:
                self.rejections[reason] += 1
                continue
            self._emitted.add(job.external_id)
            kept.append(job)

        logger.info(
            f"[filters] Kept {len(kept)}/{len(jobs)} jobs"
            + (f" (dropped: {dict(self.rejections)})" if self.rejections else "")
        )
        return kept
