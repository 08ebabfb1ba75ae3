"""
Runtime configuration for job ingestion.

All settings come from environment variables and are validated with
pydantic at startup. Non-positive limits are rejected.
"""
import logging
import os
from typing import Dict, List, Optional

import psycopg2
from pydantic import BaseModel, Field, ValidationError

from app.db_config import db_config

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

DEFAULT_EXCLUDE_KEYWORDS = [
    "adult entertainment", "gambling", "crypto scam", "mlm", "pyramid scheme",
    "get rich quick", "work from home scam", "investment scheme", "binary options",
]
DEFAULT_EXCLUDE_COMPANIES = ["Turing"]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class SourceSettings(BaseModel):
    """Limits shared by every adapter"""
    enabled: bool = True
    max_jobs: int = Field(default=100, gt=0)
    rate_limit_ms: int = Field(default=2000, ge=0)


class AdzunaQuery(BaseModel):
    country: str = Field(min_length=2, max_length=2)
    what: str
    where: Optional[str] = None
    priority: str = Field(default="medium", pattern="^(high|medium|low)$")


DEFAULT_ADZUNA_QUERIES = [
    AdzunaQuery(country="in", what="software engineer", where="bangalore", priority="high"),
    AdzunaQuery(country="in", what="developer", where="bangalore", priority="high"),
    AdzunaQuery(country="in", what="software engineer", where="mumbai", priority="high"),
    AdzunaQuery(country="in", what="developer", where="delhi", priority="high"),
    AdzunaQuery(country="us", what="software engineer", where="san francisco", priority="high"),
    AdzunaQuery(country="ca", what="developer", where="toronto", priority="medium"),
    AdzunaQuery(country="gb", what="software engineer", where="london", priority="medium"),
    AdzunaQuery(country="au", what="developer", priority="medium"),
    AdzunaQuery(country="sg", what="software engineer", priority="medium"),
    AdzunaQuery(country="de", what="developer", priority="low"),
    AdzunaQuery(country="fr", what="developer", priority="low"),
    AdzunaQuery(country="nl", what="developer", priority="low"),
]


class AdzunaSettings(SourceSettings):
    max_jobs: int = Field(default=400, gt=0)
    rate_limit_ms: int = Field(default=3000, ge=0)
    max_jobs_per_query: int = Field(default=50, gt=0, le=50)
    app_id: Optional[str] = None
    app_key: Optional[str] = None
    queries: List[AdzunaQuery] = Field(default_factory=lambda: list(DEFAULT_ADZUNA_QUERIES))

    @property
    def has_credentials(self) -> bool:
        return bool(self.app_id and self.app_key)

    def prioritized_queries(self) -> List[AdzunaQuery]:
        """Queries ordered high -> medium -> low, original order within a tier"""
        return sorted(self.queries, key=lambda q: PRIORITY_ORDER[q.priority])


DEFAULT_WWR_CATEGORIES = [
    "remote-programming-jobs",
    "remote-devops-sysadmin-jobs",
    "remote-design-jobs",
    "remote-product-jobs",
    "remote-customer-support-jobs",
    "remote-sales-and-marketing-jobs",
]


class WeWorkRemotelySettings(SourceSettings):
    max_jobs: int = Field(default=150, gt=0)
    rate_limit_ms: int = Field(default=1500, ge=0)
    max_jobs_per_category: int = Field(default=25, gt=0)
    categories: List[str] = Field(default_factory=lambda: list(DEFAULT_WWR_CATEGORIES))


class SourcesSettings(BaseModel):
    remoteok: SourceSettings = Field(default_factory=lambda: SourceSettings(max_jobs=200, rate_limit_ms=2000))
    adzuna: AdzunaSettings = Field(default_factory=AdzunaSettings)
    weworkremotely: WeWorkRemotelySettings = Field(default_factory=WeWorkRemotelySettings)
    hackernews: SourceSettings = Field(default_factory=lambda: SourceSettings(max_jobs=30, rate_limit_ms=1000))


class ScraperSettings(BaseModel):
    enabled: bool = True
    max_jobs_per_run: int = Field(default=1000, gt=0)
    exclude_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_KEYWORDS))
    exclude_companies: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_COMPANIES))
    freshness_days: int = Field(default=60, gt=0)
    history_days: int = Field(default=45, gt=0)
    min_description_length: int = Field(default=20, ge=0)
    request_timeout_s: float = Field(default=30.0, gt=0)
    min_request_gap_ms: int = Field(default=1000, ge=0)
    sources: SourcesSettings = Field(default_factory=SourcesSettings)

    @classmethod
    def from_env(cls) -> "ScraperSettings":
        """Build settings from environment variables. Raises ValidationError on bad values."""
        def source(prefix: str, default: SourceSettings) -> Dict:
            return {
                "enabled": _env_bool(f"{prefix}_ENABLED", default.enabled),
                "max_jobs": _env_int(f"{prefix}_MAX_JOBS", default.max_jobs),
                "rate_limit_ms": _env_int(f"{prefix}_RATE_LIMIT_MS", default.rate_limit_ms),
            }

        defaults = SourcesSettings()
        adzuna = source("ADZUNA", defaults.adzuna)
        adzuna.update(
            max_jobs_per_query=_env_int("ADZUNA_MAX_JOBS_PER_QUERY", defaults.adzuna.max_jobs_per_query),
            app_id=os.getenv("ADZUNA_APP_ID") or None,
            app_key=os.getenv("ADZUNA_APP_KEY") or None,
        )
        wwr = source("WWR", defaults.weworkremotely)
        wwr.update(
            max_jobs_per_category=_env_int("WWR_MAX_JOBS_PER_CATEGORY", defaults.weworkremotely.max_jobs_per_category),
            categories=_env_list("WWR_CATEGORIES", defaults.weworkremotely.categories),
        )

        return cls(
            enabled=_env_bool("JOB_SCRAPING_ENABLED", True),
            max_jobs_per_run=_env_int("MAX_JOBS_PER_RUN", 1000),
            exclude_keywords=_env_list("SCRAPER_EXCLUDE_KEYWORDS", DEFAULT_EXCLUDE_KEYWORDS),
            exclude_companies=_env_list("SCRAPER_EXCLUDE_COMPANIES", DEFAULT_EXCLUDE_COMPANIES),
            freshness_days=_env_int("SCRAPER_FRESHNESS_DAYS", 60),
            history_days=_env_int("SCRAPER_HISTORY_DAYS", 45),
            min_description_length=_env_int("SCRAPER_MIN_DESCRIPTION_LENGTH", 20),
            request_timeout_s=_env_float("SCRAPER_REQUEST_TIMEOUT", 30.0),
            min_request_gap_ms=_env_int("SCRAPER_MIN_REQUEST_GAP_MS", 1000),
            sources={
                "remoteok": source("REMOTEOK", defaults.remoteok),
                "adzuna": adzuna,
                "weworkremotely": wwr,
                "hackernews": source("HACKERNEWS", defaults.hackernews),
            },
        )

    def public_dict(self) -> Dict:
        """Settings without credentials, for status endpoints"""
        data = self.model_dump()
        adzuna = data["sources"]["adzuna"]
        adzuna["has_credentials"] = self.sources.adzuna.has_credentials
        adzuna.pop("app_id", None)
        adzuna.pop("app_key", None)
        return data


class SchedulerSettings(BaseModel):
    enabled: bool = True
    interval_hours: float = Field(default=24.0, gt=0)
    auto_start: bool = True

    @property
    def interval_seconds(self) -> float:
        return self.interval_hours * 3600

    @classmethod
    def from_env(cls) -> "SchedulerSettings":
        return cls(
            enabled=_env_bool("SCHEDULER_ENABLED", True),
            interval_hours=_env_float("SCRAPING_INTERVAL_HOURS", 24.0),
            auto_start=_env_bool("AUTO_START_SCHEDULER", True),
        )


def load_settings() -> tuple[ScraperSettings, SchedulerSettings]:
    """Load and validate both settings groups, logging what was rejected"""
    try:
        return ScraperSettings.from_env(), SchedulerSettings.from_env()
    except (ValidationError, ValueError) as e:
        logger.error(f"[config] Invalid ingestion configuration: {e}")
        raise


class Capabilities:
    @staticmethod
    def is_db_enabled() -> bool:
        """Check if a database DSN is configured"""
        return db_config.is_db_enabled

    @staticmethod
    def check_db_connection() -> bool:
        """Verify database connection with a trivial query"""
        if not Capabilities.is_db_enabled():
            return False

        conn_params = db_config.get_connection_params()
        if not conn_params:
            return False

        try:
            # Short timeout for health checks
            conn = psycopg2.connect(**conn_params, connect_timeout=1)
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.fetchone()
            cursor.close()
            conn.close()
            return True
        except psycopg2.Error as e:
            logger.warning(f"[config] Database health check failed: {e}")
            return False
