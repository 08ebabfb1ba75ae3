"""
Tests for ScrapeOrchestrator: fan-out, failure isolation, filtering and persistence.
"""
import asyncio
from unittest.mock import patch

import pytest

import metrics
from app.config import ScraperSettings
from core.net import RateLimited
from crawler.base import SourceUnavailable
from orchestrator import ScrapeOrchestrator

from conftest import FakeAdapter, InMemoryStore


def _orchestrator(store, adapters, now, **settings):
    return ScrapeOrchestrator(ScraperSettings(**settings), store, adapters, clock=lambda: now)


class GatedAdapter(FakeAdapter):
    """Blocks in fetch() until the shared gate opens"""

    def __init__(self, display_name, gate, entered, jobs=None):
        super().__init__(display_name, jobs)
        self.gate = gate
        self.entered = entered

    async def fetch(self):
        self.entered.append(self.display_name)
        await self.gate.wait()
        return await super().fetch()


class TestFetchAll:
    @pytest.mark.asyncio
    async def test_failing_source_does_not_affect_others(self, store, make_job, now):
        adapters = [
            FakeAdapter("Healthy", jobs=[make_job(), make_job()]),
            FakeAdapter("Broken", error=SourceUnavailable("down")),
        ]

        result = await _orchestrator(store, adapters, now).run()

        assert result.success is True
        assert result.total_scraped == 2
        assert result.jobs_added == 2
        assert result.per_source_counts == {"Healthy": 2, "Broken": 0}
        assert result.errors == ["Broken: down"]

    @pytest.mark.asyncio
    async def test_rate_limited_source_is_dropped(self, store, make_job, now):
        before = metrics.get_metrics()["rate_limited"].get("Limited", 0)
        adapters = [
            FakeAdapter("Limited", error=RateLimited("https://example.com/api")),
            FakeAdapter("Healthy", jobs=[make_job()]),
        ]

        result = await _orchestrator(store, adapters, now).run()

        assert result.errors == ["Limited: rate limited"]
        assert result.jobs_added == 1
        assert metrics.get_metrics()["rate_limited"]["Limited"] == before + 1

    @pytest.mark.asyncio
    async def test_adapter_output_capped_at_max_jobs(self, store, make_job, now):
        adapter = FakeAdapter("Chatty", jobs=[make_job() for _ in range(5)], max_jobs=2)

        result = await _orchestrator(store, [adapter], now).run()

        assert result.per_source_counts == {"Chatty": 2}
        assert result.total_scraped == 2

    @pytest.mark.asyncio
    async def test_sources_are_fetched_concurrently(self, store, make_job, now):
        gate = asyncio.Event()
        entered = []
        adapters = [
            GatedAdapter("First", gate, entered, jobs=[make_job()]),
            GatedAdapter("Second", gate, entered, jobs=[make_job()]),
        ]
        orchestrator = _orchestrator(store, adapters, now)

        task = asyncio.create_task(orchestrator.run())
        for _ in range(100):
            if len(entered) == 2:
                break
            await asyncio.sleep(0.01)

        assert sorted(entered) == ["First", "Second"]
        assert orchestrator.is_running is True

        gate.set()
        result = await task

        assert result.jobs_added == 2
        assert orchestrator.is_running is False


class TestRun:
    @pytest.mark.asyncio
    async def test_end_to_end_single_source(self, store, make_job, now):
        adapter = FakeAdapter("RemoteOK", jobs=[
            make_job(company="Google LLC"),
            make_job(company="Google LLC", title="Site Reliability Engineer"),
            make_job(company="Amazon.com Inc", title="Data Engineer"),
        ])

        result = await _orchestrator(store, [adapter], now, exclude_keywords=[]).run()

        assert result.jobs_added == 3
        assert result.errors == []
        assert store.organization_names() == {"Google", "Amazon"}
        assert len(store.jobs) == 3
        assert all(org.is_well_known for org in store.organizations.values())

    @pytest.mark.asyncio
    async def test_end_to_end_consolidates_organizations(self, store, make_job, now):
        adapters = [
            FakeAdapter("RemoteOK", jobs=[
                make_job(external_id="remoteok_1", company="Google LLC"),
                make_job(external_id="remoteok_2", company="Amazon Web Services"),
            ]),
            FakeAdapter("Adzuna", jobs=[
                make_job(external_id="adzuna_in_1", company="Google", location="Bangalore, India"),
            ]),
        ]

        result = await _orchestrator(store, adapters, now).run()

        assert result.success is True
        assert result.jobs_added == 3
        assert result.per_source_counts == {"RemoteOK": 2, "Adzuna": 1}
        assert store.organization_names() == {"Google", "Amazon"}
        assert len(store.jobs) == 3
        google = next(o for o in store.organizations.values() if o.name == "Google")
        assert sum(1 for j in store.jobs.values() if j.organization_id == google.id) == 2

    @pytest.mark.asyncio
    async def test_existing_ids_are_skipped(self, make_job, now):
        store = InMemoryStore(existing_ids={"remoteok_1"})
        adapters = [FakeAdapter("RemoteOK", jobs=[
            make_job(external_id="remoteok_1"),
            make_job(external_id="remoteok_2"),
        ])]

        result = await _orchestrator(store, adapters, now).run()

        assert result.total_scraped == 2
        assert result.jobs_after_filter == 1
        assert result.jobs_added == 1
        assert [j.external_id for j in store.jobs.values()] == ["remoteok_2"]

    @pytest.mark.asyncio
    async def test_second_run_adds_nothing(self, store, make_job, now):
        adapters = [FakeAdapter("RemoteOK", jobs=[make_job(external_id="remoteok_1")])]
        orchestrator = _orchestrator(store, adapters, now)

        first = await orchestrator.run()
        second = await orchestrator.run()

        assert first.jobs_added == 1
        assert second.jobs_added == 0
        assert second.jobs_after_filter == 0
        assert len(store.jobs) == 1

    @pytest.mark.asyncio
    async def test_max_jobs_per_run(self, store, make_job, now):
        adapters = [FakeAdapter("Bulk", jobs=[make_job() for _ in range(5)])]

        result = await _orchestrator(store, adapters, now, max_jobs_per_run=2).run()

        assert result.jobs_after_filter == 5
        assert result.jobs_added == 2
        assert len(store.jobs) == 2

    @pytest.mark.asyncio
    async def test_skips_and_failures_are_counted(self, store, make_job, now):
        adapters = [FakeAdapter("Mixed", jobs=[
            make_job(external_id="ok_1"),
            make_job(external_id="bad_1", company="Confidential"),
        ])]
        orchestrator = _orchestrator(store, adapters, now)

        result = await orchestrator.run()

        assert result.jobs_added == 1
        assert result.jobs_skipped == 1
        assert result.jobs_failed == 0

    @pytest.mark.asyncio
    async def test_insert_failure_is_reported(self, store, make_job, now):
        adapters = [FakeAdapter("RemoteOK", jobs=[make_job(external_id="remoteok_9")])]

        with patch.object(store, "insert_job", side_effect=RuntimeError("disk full")):
            result = await _orchestrator(store, adapters, now).run()

        assert result.success is True
        assert result.jobs_failed == 1
        assert result.errors == ["Insert failed for remoteok_9: disk full"]

    @pytest.mark.asyncio
    async def test_disabled(self, store, make_job, now):
        adapter = FakeAdapter("RemoteOK", jobs=[make_job()])

        result = await _orchestrator(store, [adapter], now, enabled=False).run()

        assert result.success is False
        assert result.errors == ["Job scraping is disabled"]
        assert adapter.calls == 0
        assert store.jobs == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_captured(self, store, make_job, now):
        adapter = FakeAdapter("RemoteOK", jobs=[make_job()])

        with patch.object(store, "load_recent_external_ids", side_effect=RuntimeError("db down")):
            result = await _orchestrator(store, [adapter], now).run()

        assert result.success is False
        assert result.errors == ["Process failed: db down"]
        assert result.finished_at == now

    @pytest.mark.asyncio
    async def test_run_metrics(self, store, make_job, now):
        before = metrics.get_metrics()
        adapters = [FakeAdapter("Metered", jobs=[make_job(), make_job(company="Confidential")])]

        await _orchestrator(store, adapters, now).run()

        after = metrics.get_metrics()
        assert after["inserted"] == before["inserted"] + 1
        assert after["skipped"]["invalid_company"] == before["skipped"].get("invalid_company", 0) + 1
        assert after["runs"]["success"] == before["runs"].get("success", 0) + 1
        assert after["source_jobs"]["Metered"] == before["source_jobs"].get("Metered", 0) + 2

    @pytest.mark.asyncio
    async def test_update_config_applies_to_next_run(self, store, make_job, now):
        orchestrator = _orchestrator(store, [FakeAdapter("Old", jobs=[make_job()])], now)
        replacement = FakeAdapter("New", jobs=[make_job(), make_job()])

        orchestrator.update_config(ScraperSettings(max_jobs_per_run=1), adapters=[replacement])
        result = await orchestrator.run()

        assert result.per_source_counts == {"New": 2}
        assert result.jobs_added == 1
        assert orchestrator.last_result is result
