"""
Relational store for organizations, ingested jobs and run logs.

JobStore is the interface the matcher, persister and scheduler depend on.
PostgresStore implements it with psycopg2, opening one short-lived
connection per operation.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Set

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extras import RealDictCursor

from .models import JobRecord, NewOrganization, Organization, RunLog

logger = logging.getLogger(__name__)

ORGANIZATION_COLUMNS = (
    "id, name, industry, size, description, logo_url, website, linkedin_url, "
    "is_well_known, is_active, created_at, updated_at"
)
UPDATABLE_ORGANIZATION_FIELDS = frozenset({
    "name", "industry", "size", "description", "logo_url", "website", "linkedin_url", "is_well_known",
})

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS organizations (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'Company',
    industry TEXT,
    size TEXT,
    description TEXT,
    logo_url TEXT,
    website TEXT,
    linkedin_url TEXT,
    is_well_known BOOLEAN NOT NULL DEFAULT FALSE,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS organizations_active_name_key
    ON organizations (lower(regexp_replace(btrim(name), '\\s+', ' ', 'g')))
    WHERE is_active;

CREATE TABLE IF NOT EXISTS jobs (
    id SERIAL PRIMARY KEY,
    organization_id INTEGER NOT NULL REFERENCES organizations(id),
    title TEXT NOT NULL,
    job_type TEXT,
    workplace_type TEXT,
    department TEXT,
    description TEXT,
    location TEXT,
    country TEXT,
    is_remote BOOLEAN NOT NULL DEFAULT FALSE,
    salary_min INTEGER,
    salary_max INTEGER,
    currency TEXT,
    salary_period TEXT DEFAULT 'Annual',
    experience_min INTEGER,
    experience_max INTEGER,
    status TEXT NOT NULL DEFAULT 'Published',
    priority TEXT,
    tags TEXT,
    application_url TEXT,
    source TEXT,
    external_job_id TEXT,
    published_at TIMESTAMPTZ,
    expires_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS jobs_external_job_id_key
    ON jobs (external_job_id) WHERE external_job_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS scraping_logs (
    id SERIAL PRIMARY KEY,
    run_id TEXT NOT NULL,
    start_time TIMESTAMPTZ NOT NULL,
    end_time TIMESTAMPTZ NOT NULL,
    success BOOLEAN NOT NULL,
    jobs_added INTEGER NOT NULL DEFAULT 0,
    total_scraped INTEGER NOT NULL DEFAULT 0,
    sources JSONB,
    error_count INTEGER NOT NULL DEFAULT 0,
    errors TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class StoreError(Exception):
    """Base class for store failures the pipeline handles explicitly"""


class DuplicateOrganizationError(StoreError):
    """An active organization with the same name already exists"""

    def __init__(self, name: str):
        super().__init__(f"organization already exists: {name}")
        self.name = name


class DuplicateJobError(StoreError):
    """A job with the same external id was already ingested"""

    def __init__(self, external_id: str):
        super().__init__(f"job already ingested: {external_id}")
        self.external_id = external_id


def collapse_name(name: str) -> str:
    return " ".join((name or "").split())


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class JobStore(ABC):
    """Storage operations used by the ingestion pipeline"""

    @abstractmethod
    def ensure_schema(self) -> None:
        ...

    @abstractmethod
    def load_recent_external_ids(self, days: int) -> Set[str]:
        """External ids of jobs ingested within the last `days` days"""

    @abstractmethod
    def find_organization_by_name(self, name: str) -> Optional[Organization]:
        """Active organization whose name matches case-insensitively, whitespace collapsed"""

    @abstractmethod
    def find_organization_candidates(self, target_length: int, window: int, limit: int,
                                     hints: Sequence[str] = ()) -> List[Organization]:
        """
        Up to `limit` active organizations whose name length is within `window`
        of `target_length`.

        Names containing any of `hints` (case-insensitive) rank first, then the
        closest lengths, then the oldest rows.
        """

    @abstractmethod
    def create_organization(self, organization: NewOrganization) -> int:
        """Insert and return the new id. Raises DuplicateOrganizationError on a name clash."""

    @abstractmethod
    def update_organization(self, organization_id: int, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def insert_job(self, record: JobRecord) -> int:
        """Insert and return the new id. Raises DuplicateJobError on an external id clash."""

    @abstractmethod
    def insert_run_log(self, log: RunLog) -> None:
        ...

    @abstractmethod
    def get_scraping_stats(self, days: int = 7) -> Dict[str, Any]:
        ...

    @abstractmethod
    def cleanup_expired_jobs(self) -> int:
        """Delete ingested jobs past their expiry date. Returns the number removed."""


class PostgresStore(JobStore):
    """psycopg2-backed store"""

    def __init__(self, db_url: str):
        if not db_url:
            raise ValueError("PostgresStore requires a database URL")
        self.db_url = db_url

    def _get_db_conn(self):
        """Get database connection."""
        try:
            return psycopg2.connect(self.db_url, connect_timeout=5)
        except Exception as e:
            logger.error(f"[store] Failed to connect to database: {e}")
            raise

    def ensure_schema(self) -> None:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
            logger.info("[store] Schema ensured (organizations, jobs, scraping_logs)")
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def load_recent_external_ids(self, days: int) -> Set[str]:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT external_job_id FROM jobs
                    WHERE external_job_id IS NOT NULL
                      AND created_at >= NOW() - make_interval(days => %s)
                    """,
                    (days,),
                )
                return {row[0] for row in cur.fetchall()}
        finally:
            if conn:
                conn.close()

    def find_organization_by_name(self, name: str) -> Optional[Organization]:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {ORGANIZATION_COLUMNS} FROM organizations
                    WHERE is_active
                      AND lower(regexp_replace(btrim(name), '\\s+', ' ', 'g')) = lower(%s)
                    ORDER BY id
                    LIMIT 1
                    """,
                    (collapse_name(name),),
                )
                row = cur.fetchone()
                return Organization.from_row(row) if row else None
        finally:
            if conn:
                conn.close()

    def find_organization_candidates(self, target_length: int, window: int, limit: int,
                                     hints: Sequence[str] = ()) -> List[Organization]:
        patterns = [f"%{_escape_like(h.lower())}%" for h in hints if h]
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {ORGANIZATION_COLUMNS} FROM organizations
                    WHERE is_active
                      AND length(name) BETWEEN %s AND %s
                    ORDER BY lower(name) LIKE ANY(%s::text[]) DESC,
                             abs(length(name) - %s),
                             id
                    LIMIT %s
                    """,
                    (max(0, target_length - window), target_length + window, patterns, target_length, limit),
                )
                return [Organization.from_row(row) for row in cur.fetchall()]
        finally:
            if conn:
                conn.close()

    def create_organization(self, organization: NewOrganization) -> int:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    INSERT INTO organizations
                        (name, industry, size, description, logo_url, website, linkedin_url, is_well_known)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (
                        organization.name,
                        organization.industry,
                        organization.size,
                        organization.description,
                        organization.logo_url,
                        organization.website,
                        organization.linkedin_url,
                        organization.is_well_known,
                    ),
                )
                organization_id = cur.fetchone()["id"]
            conn.commit()
            return organization_id
        except pg_errors.UniqueViolation as e:
            if conn:
                conn.rollback()
            raise DuplicateOrganizationError(organization.name) from e
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def update_organization(self, organization_id: int, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - UPDATABLE_ORGANIZATION_FIELDS
        if unknown:
            raise ValueError(f"cannot update organization fields: {sorted(unknown)}")
        if not fields:
            return

        columns = sorted(fields)
        assignments = ", ".join(f"{column} = %s" for column in columns)
        values = [fields[column] for column in columns] + [organization_id]

        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE organizations SET {assignments}, updated_at = NOW() WHERE id = %s",
                    values,
                )
            conn.commit()
        except pg_errors.UniqueViolation as e:
            if conn:
                conn.rollback()
            raise DuplicateOrganizationError(fields.get("name", "")) from e
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def insert_job(self, record: JobRecord) -> int:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    INSERT INTO jobs (
                        organization_id, title, job_type, workplace_type, department, description,
                        location, country, is_remote, salary_min, salary_max, currency,
                        experience_min, experience_max, priority, tags, application_url, source,
                        external_job_id, published_at, expires_at, created_at, updated_at
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                            %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
                    RETURNING id
                    """,
                    (
                        record.organization_id, record.title, record.job_type, record.workplace_type,
                        record.department, record.description, record.location, record.country,
                        record.is_remote, record.salary_min, record.salary_max, record.currency,
                        record.experience_min, record.experience_max, record.priority, record.tags,
                        record.application_url, record.source, record.external_id,
                        record.published_at, record.expires_at,
                    ),
                )
                job_id = cur.fetchone()["id"]
            conn.commit()
            return job_id
        except pg_errors.UniqueViolation as e:
            if conn:
                conn.rollback()
            raise DuplicateJobError(record.external_id) from e
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def insert_run_log(self, log: RunLog) -> None:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO scraping_logs
                        (run_id, start_time, end_time, success, jobs_added, total_scraped,
                         sources, error_count, errors)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        log.run_id, log.start_time, log.end_time, log.success, log.jobs_added,
                        log.total_scraped, json.dumps(log.sources), log.error_count, log.errors,
                    ),
                )
            conn.commit()
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def get_scraping_stats(self, days: int = 7) -> Dict[str, Any]:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT split_part(external_job_id, '_', 1) AS source,
                           COUNT(*) AS job_count,
                           MAX(created_at) AS last_scraped
                    FROM jobs
                    WHERE external_job_id IS NOT NULL
                      AND created_at >= NOW() - make_interval(days => %s)
                    GROUP BY split_part(external_job_id, '_', 1)
                    ORDER BY job_count DESC
                    """,
                    (days,),
                )
                by_source = [
                    {
                        "source": row["source"],
                        "job_count": row["job_count"],
                        "last_scraped": row["last_scraped"].isoformat() if row["last_scraped"] else None,
                    }
                    for row in cur.fetchall()
                ]
                cur.execute(
                    """
                    SELECT COUNT(*) AS total,
                           COUNT(*) FILTER (WHERE created_at >= NOW() - INTERVAL '24 hours') AS last_24h
                    FROM jobs
                    WHERE external_job_id IS NOT NULL
                    """
                )
                totals = cur.fetchone()
            return {
                "window_days": days,
                "by_source": by_source,
                "total_scraped_jobs": totals["total"],
                "jobs_last_24h": totals["last_24h"],
            }
        finally:
            if conn:
                conn.close()

    def cleanup_expired_jobs(self) -> int:
        conn = None
        try:
            conn = self._get_db_conn()
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM jobs
                    WHERE external_job_id IS NOT NULL
                      AND expires_at IS NOT NULL
                      AND expires_at < NOW()
                    """
                )
                deleted = cur.rowcount
            conn.commit()
            return deleted
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()
