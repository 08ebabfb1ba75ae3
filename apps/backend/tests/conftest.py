"""
Shared fixtures: an in-memory JobStore, a ScrapedJob factory and a fake adapter.
"""
import dataclasses
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Set
from unittest.mock import MagicMock

import pytest

from app.config import SourceSettings
from crawler.base import SourceAdapter
from pipeline.models import JobRecord, NewOrganization, Organization, RunLog, ScrapedJob
from pipeline.store import (
    DuplicateJobError,
    DuplicateOrganizationError,
    JobStore,
    StoreError,
    collapse_name,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryStore(JobStore):
    """
    JobStore backed by dicts.

    Enforces the same uniqueness rules as the PostgreSQL schema: one active
    organization per whitespace-collapsed, case-insensitive name and one job
    per external id.
    """

    def __init__(self, existing_ids: Optional[Set[str]] = None, now: datetime = NOW):
        self._lock = threading.Lock()
        self.organizations: Dict[int, Organization] = {}
        self.jobs: Dict[int, JobRecord] = {}
        self.run_logs: List[RunLog] = []
        self.existing_ids = set(existing_ids or ())
        self.create_attempts = 0
        self.now = now
        self._next_org_id = 1
        self._next_job_id = 1

    @staticmethod
    def _key(name: str) -> str:
        return collapse_name(name).lower()

    def _active_with_key(self, key: str, exclude_id: Optional[int] = None) -> Optional[Organization]:
        for org in sorted(self.organizations.values(), key=lambda o: o.id):
            if org.is_active and org.id != exclude_id and self._key(org.name) == key:
                return org
        return None

    def ensure_schema(self) -> None:
        pass

    def load_recent_external_ids(self, days: int) -> Set[str]:
        with self._lock:
            return {job.external_id for job in self.jobs.values()} | set(self.existing_ids)

    def find_organization_by_name(self, name: str) -> Optional[Organization]:
        with self._lock:
            return self._active_with_key(self._key(name))

    def find_organization_candidates(self, target_length: int, window: int, limit: int,
                                     hints: Sequence[str] = ()) -> List[Organization]:
        hints = [h.lower() for h in hints if h]

        def rank(org):
            has_hint = any(h in org.name.lower() for h in hints)
            return (not has_hint, abs(len(org.name) - target_length), org.id)

        with self._lock:
            candidates = [
                org for org in self.organizations.values()
                if org.is_active and abs(len(org.name) - target_length) <= window
            ]
            return sorted(candidates, key=rank)[:limit]

    def create_organization(self, organization: NewOrganization) -> int:
        with self._lock:
            self.create_attempts += 1
            if self._active_with_key(self._key(organization.name)):
                raise DuplicateOrganizationError(organization.name)
            org_id = self._next_org_id
            self._next_org_id += 1
            self.organizations[org_id] = Organization(
                id=org_id,
                name=organization.name,
                industry=organization.industry,
                size=organization.size,
                description=organization.description,
                logo_url=organization.logo_url,
                website=organization.website,
                linkedin_url=organization.linkedin_url,
                is_well_known=organization.is_well_known,
                created_at=self.now,
                updated_at=self.now,
            )
            return org_id

    def update_organization(self, organization_id: int, fields: Dict[str, Any]) -> None:
        with self._lock:
            if "name" in fields and self._active_with_key(self._key(fields["name"]), exclude_id=organization_id):
                raise DuplicateOrganizationError(fields["name"])
            current = self.organizations[organization_id]
            self.organizations[organization_id] = dataclasses.replace(current, **fields)

    def insert_job(self, record: JobRecord) -> int:
        with self._lock:
            if record.organization_id not in self.organizations:
                raise StoreError(f"unknown organization {record.organization_id}")
            if any(job.external_id == record.external_id for job in self.jobs.values()):
                raise DuplicateJobError(record.external_id)
            job_id = self._next_job_id
            self._next_job_id += 1
            self.jobs[job_id] = record
            return job_id

    def insert_run_log(self, log: RunLog) -> None:
        with self._lock:
            self.run_logs.append(log)

    def get_scraping_stats(self, days: int = 7) -> Dict[str, Any]:
        with self._lock:
            by_source: Dict[str, int] = {}
            for job in self.jobs.values():
                prefix = job.external_id.split("_", 1)[0]
                by_source[prefix] = by_source.get(prefix, 0) + 1
            return {
                "window_days": days,
                "by_source": [{"source": s, "job_count": c, "last_scraped": None} for s, c in by_source.items()],
                "total_scraped_jobs": len(self.jobs),
                "jobs_last_24h": len(self.jobs),
            }

    def cleanup_expired_jobs(self) -> int:
        with self._lock:
            expired = [job_id for job_id, job in self.jobs.items() if job.expires_at < self.now]
            for job_id in expired:
                del self.jobs[job_id]
            return len(expired)

    def organization_names(self) -> Set[str]:
        return {org.name for org in self.organizations.values()}


class FakeAdapter(SourceAdapter):
    """Adapter returning canned jobs, or raising a canned error"""

    name = "fake"

    def __init__(self, display_name: str, jobs: Optional[List[ScrapedJob]] = None,
                 error: Optional[Exception] = None, max_jobs: int = 100):
        super().__init__(governor=MagicMock(), settings=SourceSettings(max_jobs=max_jobs, rate_limit_ms=0))
        self.display_name = display_name
        self.jobs = list(jobs or [])
        self.error = error
        self.calls = 0

    async def fetch(self) -> List[ScrapedJob]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.jobs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def make_job():
    """Factory for ScrapedJob with sensible defaults"""
    counter = {"n": 0}

    def _make(**overrides) -> ScrapedJob:
        counter["n"] += 1
        values = {
            "external_id": f"test_{counter['n']}",
            "title": "Senior Software Engineer",
            "company": "Acme Robotics",
            "source": "Test",
            "location": "Remote",
            "description": "Build and maintain distributed systems for our robotics platform.",
            "posted_at": NOW - timedelta(days=1),
        }
        values.update(overrides)
        return ScrapedJob(**values)

    return _make
