"""
RemoteOK JSON API adapter
"""
from typing import Any, Dict, List, Optional

from core.normalize import parse_salary_amount
from crawler.base import SourceAdapter, SourceUnavailable, html_to_text, text_field
from pipeline.models import ScrapedJob

REMOTEOK_API_URL = "https://remoteok.com/api"
MAX_REQUIREMENT_TAGS = 10


class RemoteOKAdapter(SourceAdapter):
    """Remote-jobs aggregator. One request returns the whole current feed."""

    name = "remoteok"
    display_name = "RemoteOK"

    async def fetch(self) -> List[ScrapedJob]:
        data = await self._get_json(REMOTEOK_API_URL)
        if not isinstance(data, list):
            raise SourceUnavailable("RemoteOK returned a non-list payload")

        # First element is a legal/metadata notice, not a job
        postings = data[1:]
        self.logger.info(f"[remoteok] Found {len(postings)} postings")

        jobs: List[ScrapedJob] = []
        for posting in postings:
            if len(jobs) >= self.max_jobs:
                break
            if not isinstance(posting, dict):
                continue
            job = self.map_record(self._to_job, posting)
            if job:
                jobs.append(job)

        self.logger.info(f"[remoteok] Mapped {len(jobs)} jobs")
        return jobs

    def _to_job(self, posting: Dict[str, Any]) -> Optional[ScrapedJob]:
        job_id = text_field(posting.get("id"))
        title = text_field(posting.get("position"))
        company = text_field(posting.get("company"))
        if not job_id or not title or not company:
            return None

        posted_at = self.resolve_posted_at(posting.get("epoch") or posting.get("date"))
        if posted_at is None:
            return None

        tags = posting.get("tags")
        requirements = ", ".join(str(t) for t in tags[:MAX_REQUIREMENT_TAGS]) if isinstance(tags, list) else None
        description = html_to_text(posting.get("description")) or f"{title} at {company}"

        return ScrapedJob(
            external_id=f"remoteok_{job_id}",
            title=title,
            company=company,
            source=self.display_name,
            location=text_field(posting.get("location")) or "Remote",
            description=description,
            application_url=text_field(posting.get("apply_url")) or text_field(posting.get("url")) or None,
            salary_min=parse_salary_amount(posting.get("salary_min")),
            salary_max=parse_salary_amount(posting.get("salary_max")),
            job_type="Full-time",
            workplace_type="Remote",
            requirements=requirements,
            posted_at=posted_at,
            logo_url=text_field(posting.get("company_logo")) or text_field(posting.get("logo")) or None,
        )
