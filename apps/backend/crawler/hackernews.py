"""
Hacker News job stories adapter (YC company postings)
"""
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from core.normalize import detect_workplace_type
from crawler.base import SourceAdapter, SourceUnavailable, html_to_text, text_field
from pipeline.models import ScrapedJob

HN_JOBSTORIES_URL = "https://hacker-news.firebaseio.com/v0/jobstories.json"
HN_ITEM_URL = "https://hacker-news.firebaseio.com/v0/item/{item_id}.json"
HN_DISCUSSION_URL = "https://news.ycombinator.com/item?id={item_id}"

FALLBACK_COMPANY = "YC Startup"

# "Acme (YC S21) Is Hiring a Senior Engineer"
YC_BATCH_PATTERN = re.compile(
    r"^(?P<company>.+?)\s*\(\s*YC\s+[A-Z]?\d{2,4}\s*\)\s*(?P<rest>.*)$",
    re.IGNORECASE,
)
HIRING_PATTERN = re.compile(
    r"^(?P<company>.+?)\s+is\s+hiring\b\s*(?P<role>.*)$",
    re.IGNORECASE,
)
HIRING_LEAD = re.compile(r"^(?:is\s+)?hiring\b\s*", re.IGNORECASE)
ROLE_LEAD = re.compile(r"^(?:[-–—:|]\s*)?(?:an?\s+)?", re.IGNORECASE)
SEPARATORS = (": ", " – ", " — ", " - ", " | ")

# Applicant tracking hosts put the company in the first path segment
ATS_HOSTS = ("lever.co", "greenhouse.io", "ashbyhq.com", "workable.com")


def _clean_role(role: str) -> str:
    role = ROLE_LEAD.sub("", role.strip(), count=1)
    return role.strip(" .!")


def company_from_url(url: Optional[str]) -> Optional[str]:
    """Best-effort company name from a posting URL"""
    if not url:
        return None
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if not host or host.endswith("ycombinator.com"):
        return None

    if any(host == ats or host.endswith("." + ats) for ats in ATS_HOSTS):
        segments = [s for s in parsed.path.split("/") if s]
        if not segments:
            return None
        return segments[0].replace("-", " ").title()

    labels = [label for label in host.split(".") if label not in ("www", "jobs", "careers")]
    if len(labels) < 2:
        return None
    return labels[-2].replace("-", " ").title()


def split_hn_title(title: str, url: Optional[str] = None) -> Tuple[str, str]:
    """
    Split an HN job story title into (company, role).

    Falls back to a company derived from the URL (or a placeholder) with the
    full title as the role when no known title shape matches.
    """
    title = " ".join((title or "").split())

    yc = YC_BATCH_PATTERN.match(title)
    if yc:
        company = yc.group("company").strip()
        rest = HIRING_LEAD.sub("", yc.group("rest"), count=1)
        role = _clean_role(rest)
        return company, role or title

    hiring = HIRING_PATTERN.match(title)
    if hiring:
        role = _clean_role(hiring.group("role"))
        if role:
            return hiring.group("company").strip(), role

    for separator in SEPARATORS:
        if separator in title:
            company, _, role = title.partition(separator)
            company, role = company.strip(), role.strip()
            if company and role:
                return company, role

    return company_from_url(url) or FALLBACK_COMPANY, title


class HackerNewsAdapter(SourceAdapter):
    name = "hackernews"
    display_name = "HackerNews"

    async def fetch(self) -> List[ScrapedJob]:
        story_ids = await self._get_json(HN_JOBSTORIES_URL)
        if not isinstance(story_ids, list):
            raise SourceUnavailable("jobstories returned a non-list payload")

        self.logger.info(f"[hackernews] {len(story_ids)} job stories listed")

        jobs: List[ScrapedJob] = []
        for item_id in story_ids[: self.max_jobs]:
            try:
                item = await self._get_json(HN_ITEM_URL.format(item_id=item_id))
            except SourceUnavailable as e:
                self.logger.warning(f"[hackernews] Item {item_id} failed: {e}")
                continue
            if not isinstance(item, dict):
                continue
            job = self.map_record(self._to_job, item)
            if job:
                jobs.append(job)

        self.logger.info(f"[hackernews] Mapped {len(jobs)} jobs")
        return jobs

    def _to_job(self, item: Dict[str, Any]) -> Optional[ScrapedJob]:
        item_id = text_field(item.get("id"))
        raw_title = text_field(item.get("title"))
        if not item_id or not raw_title or item.get("deleted") or item.get("dead"):
            return None

        posted_at = self.resolve_posted_at(item.get("time"))
        if posted_at is None:
            return None

        url = text_field(item.get("url")) or None
        company, title = split_hn_title(html_to_text(raw_title), url)
        description = html_to_text(item.get("text")) or f"{title} at {company}"
        workplace_type = detect_workplace_type("", title, description)

        return ScrapedJob(
            external_id=f"hn_{item_id}",
            title=title,
            company=company,
            source=self.display_name,
            location="Remote" if workplace_type == "Remote" else "See posting",
            description=description,
            application_url=url or HN_DISCUSSION_URL.format(item_id=item_id),
            job_type="Full-time",
            workplace_type=workplace_type,
            posted_at=posted_at,
        )
