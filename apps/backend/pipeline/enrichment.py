"""
Organization enrichment from scraped postings.

Computes organization metadata from a posting and the canonical table, and
decides which stored fields may be back-filled with it.
"""
import logging
import re
from typing import Any, Dict, Optional

from core.canonical_companies import CanonicalCompany
from .models import DEFAULT_INDUSTRY, DEFAULT_SIZE, Organization, OrganizationEnrichment, ScrapedJob

logger = logging.getLogger(__name__)

# Fields filled only while the stored value is empty
BACKFILL_FIELDS = ("logo_url", "website", "description", "size", "linkedin_url")

GENERIC_INDUSTRIES = frozenset({"", DEFAULT_INDUSTRY.lower(), "unknown", "other"})
GENERIC_SIZES = frozenset({"", DEFAULT_SIZE.lower()})

DOMAIN_NAME = re.compile(r"^[a-z0-9-]+\.(com|io|ai|co|net|org|dev|app)$", re.IGNORECASE)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def is_generic_industry(industry: Optional[str]) -> bool:
    return _is_blank(industry) or industry.strip().lower() in GENERIC_INDUSTRIES


def _linkedin_slug(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug


def build_enrichment(job: ScrapedJob, display_name: str,
                     canonical: Optional[CanonicalCompany] = None) -> OrganizationEnrichment:
    """
    Derive organization metadata from one posting.

    Well-known employers get their curated industry, a size bucket and a
    LinkedIn company URL. Everyone else only gets what the posting carries.
    """
    website = job.website
    if not website and DOMAIN_NAME.match(display_name):
        website = f"https://{display_name.lower()}"

    if canonical:
        description = f"{canonical.canonical_name} is a well-known employer in {canonical.industry}."
        if canonical.rank:
            description += f" Fortune 500 rank {canonical.rank}."
        return OrganizationEnrichment(
            industry=canonical.industry,
            size="10000+",
            description=description,
            logo_url=job.logo_url,
            website=website,
            linkedin_url=f"https://www.linkedin.com/company/{_linkedin_slug(canonical.canonical_name)}",
        )

    return OrganizationEnrichment(
        industry=job.industry_hint,
        description=f"Organization created by job scraper for {display_name}",
        logo_url=job.logo_url,
        website=website,
    )


def backfill_updates(existing: Organization, enrichment: Optional[OrganizationEnrichment]) -> Dict[str, Any]:
    """
    Fields to write onto an existing organization.

    Only empty fields are filled. Industry is additionally replaced when the
    stored value is a generic default and the new one is specific; a specific
    industry is never replaced.
    """
    if enrichment is None:
        return {}

    updates: Dict[str, Any] = {}
    for field_name in BACKFILL_FIELDS:
        new_value = getattr(enrichment, field_name)
        if _is_blank(new_value):
            continue
        current = getattr(existing, field_name)
        if field_name == "size":
            empty = _is_blank(current) or current.strip().lower() in GENERIC_SIZES
        else:
            empty = _is_blank(current)
        if empty:
            updates[field_name] = new_value

    if not is_generic_industry(enrichment.industry) and is_generic_industry(existing.industry):
        updates["industry"] = enrichment.industry

    return updates
