"""
Typed records passed between ingestion stages.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

TITLE_MAX_LENGTH = 200
COMPANY_MAX_LENGTH = 100
LOCATION_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
EXTERNAL_ID_MAX_LENGTH = 100

DEFAULT_INDUSTRY = "Technology"
DEFAULT_SIZE = "Unknown"


def _clip(value: Any, limit: int, collapse: bool = True) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    text = " ".join(value.split()) if collapse else value.strip()
    return text[:limit]


@dataclass
class ScrapedJob:
    """
    One posting as produced by a source adapter.

    Text fields are trimmed and truncated on construction so nothing
    downstream has to re-check their length.
    """
    external_id: str
    title: str
    company: str
    source: str
    location: str = ""
    description: str = ""
    application_url: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    job_type: str = "Full-time"
    workplace_type: str = "Remote"
    requirements: Optional[str] = None
    posted_at: Optional[datetime] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    industry_hint: Optional[str] = None

    def __post_init__(self):
        self.external_id = _clip(self.external_id, EXTERNAL_ID_MAX_LENGTH, collapse=False)
        self.title = _clip(self.title, TITLE_MAX_LENGTH)
        self.company = _clip(self.company, COMPANY_MAX_LENGTH)
        self.location = _clip(self.location, LOCATION_MAX_LENGTH)
        self.description = _clip(self.description, DESCRIPTION_MAX_LENGTH, collapse=False)
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            self.salary_min, self.salary_max = self.salary_max, self.salary_min


@dataclass
class Organization:
    """Stored organization row"""
    id: int
    name: str
    industry: Optional[str] = None
    size: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    is_well_known: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Organization":
        return cls(
            id=row["id"],
            name=row["name"],
            industry=row.get("industry"),
            size=row.get("size"),
            description=row.get("description"),
            logo_url=row.get("logo_url"),
            website=row.get("website"),
            linkedin_url=row.get("linkedin_url"),
            is_well_known=bool(row.get("is_well_known")),
            is_active=bool(row.get("is_active", True)),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class OrganizationEnrichment:
    """Freshly computed organization metadata. Empty fields mean "unknown"."""
    industry: Optional[str] = None
    size: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None


@dataclass
class NewOrganization:
    """Values for an organization row about to be created"""
    name: str
    industry: str = DEFAULT_INDUSTRY
    size: str = DEFAULT_SIZE
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    is_well_known: bool = False

    def __post_init__(self):
        self.name = " ".join((self.name or "").split())[:COMPANY_MAX_LENGTH]
        if not self.name:
            raise ValueError("organization name must not be empty")


@dataclass
class JobRecord:
    """A job row ready for insert"""
    organization_id: int
    external_id: str
    title: str
    source: str
    job_type: str
    workplace_type: str
    department: str
    description: str
    location: str
    country: str
    is_remote: bool
    currency: str
    experience_min: int
    experience_max: int
    priority: str
    tags: str
    published_at: datetime
    expires_at: datetime
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    application_url: Optional[str] = None

    def __post_init__(self):
        if not self.external_id:
            raise ValueError("job record requires an external id")
        if self.experience_max < self.experience_min:
            self.experience_max = self.experience_min


@dataclass
class PersistOutcome:
    """Result of persisting one job: inserted, skipped or failed"""
    status: str
    external_id: str
    job_id: Optional[int] = None
    organization_id: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    INSERTED = "inserted"
    SKIPPED = "skipped"
    FAILED = "failed"

    @classmethod
    def inserted(cls, external_id: str, job_id: int, organization_id: int) -> "PersistOutcome":
        return cls(cls.INSERTED, external_id, job_id=job_id, organization_id=organization_id)

    @classmethod
    def skipped(cls, external_id: str, reason: str) -> "PersistOutcome":
        return cls(cls.SKIPPED, external_id, reason=reason)

    @classmethod
    def failed(cls, external_id: str, error: str) -> "PersistOutcome":
        return cls(cls.FAILED, external_id, error=error)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunResult:
    """Outcome of one orchestrator run"""
    success: bool = True
    jobs_added: int = 0
    total_scraped: int = 0
    jobs_after_filter: int = 0
    jobs_skipped: int = 0
    jobs_failed: int = 0
    per_source_counts: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data


@dataclass
class RunLog:
    """One row of the scraping_logs table. Built once at the end of a run."""
    run_id: str
    start_time: datetime
    end_time: datetime
    success: bool
    jobs_added: int
    total_scraped: int
    sources: Dict[str, int]
    error_count: int
    errors: Optional[str]

    MAX_LOGGED_ERRORS = 5

    @classmethod
    def from_result(cls, result: RunResult) -> "RunLog":
        end_time = result.finished_at or utcnow()
        errors = result.errors[:cls.MAX_LOGGED_ERRORS]
        return cls(
            run_id=f"scrape_{int(result.started_at.timestamp() * 1000)}",
            start_time=result.started_at,
            end_time=end_time,
            success=result.success,
            jobs_added=result.jobs_added,
            total_scraped=result.total_scraped,
            sources=dict(result.per_source_counts),
            error_count=len(result.errors),
            errors="; ".join(errors) if errors else None,
        )
