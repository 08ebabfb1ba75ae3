"""
Unit tests for pipeline/models.py
"""
from datetime import datetime, timedelta, timezone

import pytest

from pipeline.models import (
    DESCRIPTION_MAX_LENGTH,
    JobRecord,
    NewOrganization,
    Organization,
    PersistOutcome,
    RunLog,
    RunResult,
    ScrapedJob,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestScrapedJob:
    def test_fields_are_trimmed_and_truncated(self):
        job = ScrapedJob(
            external_id="  remoteok_1 ",
            title="  Senior    Engineer ",
            company="A" * 150,
            source="RemoteOK",
            description="x" * 5000,
        )
        assert job.external_id == "remoteok_1"
        assert job.title == "Senior Engineer"
        assert len(job.company) == 100
        assert len(job.description) == DESCRIPTION_MAX_LENGTH

    def test_description_keeps_line_breaks(self):
        job = ScrapedJob("a_1", "Engineer", "Acme", "Test", description="Line one\nLine two ")
        assert job.description == "Line one\nLine two"

    def test_salary_bounds_are_ordered(self):
        job = ScrapedJob("a_1", "Engineer", "Acme", "Test", salary_min=150000, salary_max=90000)
        assert (job.salary_min, job.salary_max) == (90000, 150000)

    def test_missing_text_becomes_empty(self):
        job = ScrapedJob("a_1", None, None, "Test")
        assert job.title == ""
        assert job.company == ""

    def test_non_string_text_is_coerced(self):
        job = ScrapedJob(12, "Engineer", "Acme", "Test", location=12345)
        assert job.external_id == "12"
        assert job.location == "12345"


class TestOrganization:
    def test_from_row(self):
        org = Organization.from_row({"id": 4, "name": "Acme", "is_well_known": None})
        assert org.id == 4
        assert org.is_well_known is False
        assert org.is_active is True

    def test_new_organization_requires_name(self):
        with pytest.raises(ValueError):
            NewOrganization(name="   ")

    def test_new_organization_defaults(self):
        org = NewOrganization(name="  Acme   Robotics ")
        assert org.name == "Acme Robotics"
        assert org.industry == "Technology"
        assert org.size == "Unknown"


class TestJobRecord:
    def _record(self, **overrides):
        values = dict(
            organization_id=1, external_id="hn_1", title="Engineer", source="HackerNews",
            job_type="Full-time", workplace_type="Remote", department="Engineering",
            description="Build", location="Remote", country="Remote", is_remote=True,
            currency="USD", experience_min=5, experience_max=3, priority="High", tags="HackerNews",
            published_at=NOW, expires_at=NOW + timedelta(days=60),
        )
        values.update(overrides)
        return JobRecord(**values)

    def test_experience_max_clamped_to_min(self):
        assert self._record().experience_max == 5

    def test_requires_external_id(self):
        with pytest.raises(ValueError):
            self._record(external_id="")


class TestPersistOutcome:
    def test_constructors(self):
        assert PersistOutcome.inserted("a", 1, 2).status == "inserted"
        assert PersistOutcome.skipped("a", "duplicate external id").reason == "duplicate external id"
        assert PersistOutcome.failed("a", "boom").error == "boom"


class TestRunResult:
    def test_to_dict_serializes_timestamps(self):
        result = RunResult(started_at=NOW, finished_at=NOW + timedelta(seconds=5), jobs_added=2)
        data = result.to_dict()
        assert data["started_at"] == "2025-06-01T12:00:00+00:00"
        assert data["finished_at"] == "2025-06-01T12:00:05+00:00"
        assert data["jobs_added"] == 2

    def test_to_dict_unfinished(self):
        assert RunResult(started_at=NOW).to_dict()["finished_at"] is None


class TestRunLog:
    def test_from_result_keeps_first_five_errors(self):
        errors = [f"error {i}" for i in range(7)]
        result = RunResult(
            success=False, started_at=NOW, finished_at=NOW + timedelta(minutes=2),
            jobs_added=3, total_scraped=10, per_source_counts={"RemoteOK": 10}, errors=errors,
        )

        log = RunLog.from_result(result)

        assert log.run_id == f"scrape_{int(NOW.timestamp() * 1000)}"
        assert log.end_time == NOW + timedelta(minutes=2)
        assert log.success is False
        assert log.error_count == 7
        assert log.errors == "error 0; error 1; error 2; error 3; error 4"
        assert log.sources == {"RemoteOK": 10}

    def test_from_result_without_errors(self):
        log = RunLog.from_result(RunResult(started_at=NOW, finished_at=NOW))
        assert log.errors is None
        assert log.error_count == 0
