"""
Prometheus metrics for ingestion runs.
"""
import logging
from typing import Dict

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

jobs_inserted = Counter('jobingest_jobs_inserted_total', 'Total jobs inserted')
jobs_skipped = Counter('jobingest_jobs_skipped_total', 'Total jobs skipped', ['reason'])
jobs_failed = Counter('jobingest_jobs_failed_total', 'Total jobs that failed to persist')
runs = Counter('jobingest_runs_total', 'Completed ingestion runs', ['status'])
source_jobs = Counter('jobingest_source_jobs_total', 'Jobs returned by each source', ['source'])
rate_limited = Counter('jobingest_rate_limited_total', 'Runs in which a source answered 429', ['source'])
run_duration = Histogram(
    'jobingest_run_duration_seconds',
    'Wall-clock duration of an ingestion run',
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1200, 1800),
)


def incr_inserted(n: int = 1):
    if n > 0:
        jobs_inserted.inc(n)


def incr_skipped(reason: str, n: int = 1):
    if n > 0:
        jobs_skipped.labels(reason=reason).inc(n)


def incr_failed(n: int = 1):
    if n > 0:
        jobs_failed.inc(n)


def incr_source_jobs(source: str, n: int):
    if n > 0:
        source_jobs.labels(source=source).inc(n)


def incr_rate_limited(source: str):
    rate_limited.labels(source=source).inc()


def observe_run(success: bool, duration_seconds: float):
    """Count a finished run and record its duration"""
    runs.labels(status='success' if success else 'failure').inc()
    run_duration.observe(max(duration_seconds, 0.0))


def _by_label(counter: Counter, label: str) -> Dict[str, float]:
    values = {}
    for family in counter.collect():
        for sample in family.samples:
            if sample.name.endswith('_total') and label in sample.labels:
                values[sample.labels[label]] = sample.value
    return values


def _total(counter: Counter) -> float:
    for family in counter.collect():
        for sample in family.samples:
            if sample.name.endswith('_total'):
                return sample.value
    return 0.0


def get_metrics() -> dict:
    """Snapshot of the ingestion counters (for the status endpoint)."""
    duration_sum = 0.0
    duration_count = 0.0
    for family in run_duration.collect():
        for sample in family.samples:
            if sample.name.endswith('_sum'):
                duration_sum = sample.value
            elif sample.name.endswith('_count'):
                duration_count = sample.value

    return {
        'inserted': _total(jobs_inserted),
        'skipped': _by_label(jobs_skipped, 'reason'),
        'failed': _total(jobs_failed),
        'runs': _by_label(runs, 'status'),
        'source_jobs': _by_label(source_jobs, 'source'),
        'rate_limited': _by_label(rate_limited, 'source'),
        'run_duration_seconds': {'sum': duration_sum, 'count': duration_count},
    }
