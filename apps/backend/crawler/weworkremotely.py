"""
We Work Remotely RSS adapter.

The category feeds are not always well-formed XML, so items are cut out of
the raw text and each field is read CDATA-first, then as a plain tag. A broken
item is skipped without affecting the rest of the feed.
"""
import html
import re
from typing import Dict, List, Optional
from urllib.parse import urlparse

from app.config import WeWorkRemotelySettings
from core.normalize import detect_workplace_type, map_job_type
from crawler.base import SourceAdapter, SourceUnavailable, html_to_text
from pipeline.models import ScrapedJob

WWR_FEED_URL = "https://weworkremotely.com/categories/{category}.rss"

ITEM_PATTERN = re.compile(r"<item\b[^>]*>(.*?)</item>", re.IGNORECASE | re.DOTALL)
ITEM_FIELDS = ("title", "link", "guid", "pubDate", "description", "region", "category", "type")


def extract_tag(fragment: str, tag: str) -> Optional[str]:
    """Text of <tag>, trying <![CDATA[...]]> content first, then plain content"""
    open_tag = rf"<{tag}(?:\s[^>]*)?>"
    close_tag = rf"</{tag}>"

    cdata = re.search(
        open_tag + r"\s*<!\[CDATA\[(.*?)\]\]>\s*" + close_tag,
        fragment,
        re.IGNORECASE | re.DOTALL,
    )
    if cdata:
        return cdata.group(1).strip()

    plain = re.search(open_tag + r"(.*?)" + close_tag, fragment, re.IGNORECASE | re.DOTALL)
    if plain:
        return html.unescape(plain.group(1).strip())
    return None


def parse_feed_items(xml_text: str) -> List[Dict[str, Optional[str]]]:
    """Split a feed into per-item field dicts"""
    items = []
    for fragment in ITEM_PATTERN.findall(xml_text or ""):
        items.append({tag: extract_tag(fragment, tag) for tag in ITEM_FIELDS})
    return items


def split_company_title(combined: str) -> Optional[tuple]:
    """'Acme Corp: Senior Engineer' -> ('Acme Corp', 'Senior Engineer')"""
    if ":" not in combined:
        return None
    company, _, title = combined.partition(":")
    company, title = company.strip(), title.strip()
    if not company or not title:
        return None
    return company, title


def slug_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    path = urlparse(url.strip()).path.rstrip("/")
    slug = path.rsplit("/", 1)[-1] if path else ""
    return slug or None


class WeWorkRemotelyAdapter(SourceAdapter):
    name = "weworkremotely"
    display_name = "WeWorkRemotely"
    settings: WeWorkRemotelySettings

    async def fetch(self) -> List[ScrapedJob]:
        jobs: List[ScrapedJob] = []
        failed = 0
        categories = self.settings.categories

        for category in categories:
            if len(jobs) >= self.max_jobs:
                break
            try:
                xml_text = await self._get_text(WWR_FEED_URL.format(category=category))
            except SourceUnavailable as e:
                failed += 1
                self.logger.warning(f"[weworkremotely] Category {category} failed: {e}")
                continue

            limit = min(self.settings.max_jobs_per_category, self.max_jobs - len(jobs))
            category_jobs = self.parse_category(xml_text, limit)
            self.logger.info(f"[weworkremotely] {category}: {len(category_jobs)} jobs")
            jobs.extend(category_jobs)

        if categories and failed == len(categories):
            raise SourceUnavailable(f"all {failed} We Work Remotely feeds failed")
        return jobs

    def parse_category(self, xml_text: str, limit: int) -> List[ScrapedJob]:
        jobs: List[ScrapedJob] = []
        for item in parse_feed_items(xml_text):
            if len(jobs) >= limit:
                break
            job = self.map_record(self._to_job, item)
            if job:
                jobs.append(job)
        return jobs

    def _to_job(self, item: Dict[str, Optional[str]]) -> Optional[ScrapedJob]:
        combined = html_to_text(item.get("title"))
        parts = split_company_title(combined) if combined else None
        if not parts:
            return None
        company, title = parts

        slug = slug_from_url(item.get("guid")) or slug_from_url(item.get("link"))
        if not slug:
            return None

        posted_at = self.resolve_posted_at(item.get("pubDate"))
        if posted_at is None:
            return None

        location = html_to_text(item.get("region")) or "Remote"
        description = html_to_text(item.get("description")) or f"{title} at {company}"

        return ScrapedJob(
            external_id=f"wwr_{slug}",
            title=title,
            company=company,
            source=self.display_name,
            location=location,
            description=description,
            application_url=(item.get("link") or "").strip() or None,
            job_type=map_job_type(item.get("type")),
            workplace_type=detect_workplace_type("remote " + location, title, ""),
            requirements=html_to_text(item.get("category")) or None,
            posted_at=posted_at,
        )
