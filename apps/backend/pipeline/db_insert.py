"""
Database insertion for scraped jobs.

Resolves each job's organization, derives the classified job columns and
inserts the job row. Every call returns a PersistOutcome; nothing a single
job can do is allowed to abort the batch.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from core.canonical_companies import find_canonical_company
from core.company_names import check_company_name
from core.normalize import (
    build_tags,
    calculate_expiry,
    calculate_priority,
    detect_currency,
    ensure_utc,
    extract_country,
    extract_department,
    extract_max_experience,
    extract_min_experience,
    job_age_days,
)
from .enrichment import build_enrichment
from .matching import OrganizationMatcher
from .models import JobRecord, PersistOutcome, ScrapedJob, utcnow
from .store import DuplicateJobError, JobStore

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 25


def build_job_record(job: ScrapedJob, organization_id: int, now: datetime) -> JobRecord:
    """Map a scraped job onto the jobs table, computing the derived columns"""
    posted_at = ensure_utc(job.posted_at) if job.posted_at else now
    age = job_age_days(posted_at, now)

    return JobRecord(
        organization_id=organization_id,
        external_id=job.external_id,
        title=job.title,
        source=job.source,
        job_type=job.job_type,
        workplace_type=job.workplace_type,
        department=extract_department(job.title),
        description=job.description,
        location=job.location,
        country=extract_country(job.location),
        is_remote=job.workplace_type == "Remote",
        currency=detect_currency(job.location),
        experience_min=extract_min_experience(job.title, job.description),
        experience_max=extract_max_experience(job.title, job.description),
        priority=calculate_priority(age),
        tags=build_tags(job.source, job.job_type, job.workplace_type, job.requirements),
        published_at=posted_at,
        expires_at=calculate_expiry(posted_at, age, now),
        salary_min=job.salary_min,
        salary_max=job.salary_max,
        application_url=job.application_url,
    )


class DBInsert:
    """Persists scraped jobs: resolve organization, then insert job."""

    def __init__(self, store: JobStore, matcher: Optional[OrganizationMatcher] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.matcher = matcher or OrganizationMatcher(store)
        self.clock = clock

    def persist(self, job: ScrapedJob) -> PersistOutcome:
        """
        Insert a single scraped job.

        Returns:
            PersistOutcome with status inserted, skipped (invalid company name or
            already-ingested external id) or failed (any other store error)
        """
        check = check_company_name(job.company)
        if not check.valid:
            logger.info(f"[db_insert] Skipping '{job.title}': invalid company '{job.company}' ({check.reason})")
            return PersistOutcome.skipped(job.external_id, f"invalid company name: {check.reason}")

        try:
            canonical = find_canonical_company(check.name)
            display_name = canonical.canonical_name if canonical else check.name
            enrichment = build_enrichment(job, display_name, canonical)
            resolution = self.matcher.resolve(check.name, enrichment)

            record = build_job_record(job, resolution.organization_id, self.clock())
            job_id = self.store.insert_job(record)
        except DuplicateJobError:
            logger.info(f"[db_insert] Skipping {job.external_id}: already ingested")
            return PersistOutcome.skipped(job.external_id, "duplicate external id")
        except Exception as e:
            logger.error(f"[db_insert] Failed to insert '{job.title}' ({job.external_id}): {e}")
            return PersistOutcome.failed(job.external_id, str(e))

        logger.debug(f"[db_insert] Inserted job {job_id} ({job.external_id}) for organization {resolution.organization_id}")
        return PersistOutcome.inserted(job.external_id, job_id, resolution.organization_id)

    def persist_batch(self, jobs: List[ScrapedJob]) -> Dict[str, int]:
        """
        Persist jobs one at a time.

        Returns:
            Dict with counts: {inserted, skipped, failed, total}
        """
        counts = {"inserted": 0, "skipped": 0, "failed": 0, "total": len(jobs)}
        for index, job in enumerate(jobs, start=1):
            outcome = self.persist(job)
            counts[outcome.status] += 1
            if index % PROGRESS_EVERY == 0:
                logger.info(f"[db_insert] Progress: {index}/{len(jobs)} jobs processed")
        return counts
