"""
Base interface for job source adapters.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import ScraperSettings, SourceSettings
from core.net import RequestGovernor, TransportError
from pipeline.models import ScrapedJob, utcnow

logger = logging.getLogger(__name__)

TRANSPORT_RETRIES = 2

# Raised by mapping code when a record has an unexpected shape
MALFORMED_RECORD_ERRORS = (ValueError, TypeError, AttributeError, KeyError)


class SourceError(Exception):
    """Base class for adapter-level failures"""


class SourceUnavailable(SourceError):
    """The source could not be reached or returned something unusable"""


class SourceConfigurationError(SourceError):
    """The adapter is enabled but missing required configuration"""


class SourceAdapter(ABC):
    """
    Base class for source adapters.

    Each adapter turns one external source into a list of ScrapedJob records.
    Every outbound call goes through the shared RequestGovernor with this
    source's pacing. RateLimited is never caught here: it propagates out of
    fetch() so the orchestrator can drop the source for the rest of the run.
    """

    name: str = ""
    display_name: str = ""

    def __init__(
        self,
        governor: RequestGovernor,
        settings: SourceSettings,
        scraper_settings: Optional[ScraperSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        retry_backoff_s: float = 2.0,
    ):
        self.governor = governor
        self.settings = settings
        self.scraper_settings = scraper_settings or ScraperSettings()
        self.clock = clock
        self.retry_backoff_s = retry_backoff_s
        self.logger = logging.getLogger(f"crawler.{self.name}")

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    @property
    def max_jobs(self) -> int:
        return self.settings.max_jobs

    @abstractmethod
    async def fetch(self) -> List[ScrapedJob]:
        """
        Fetch postings from the source.

        Returns:
            At most max_jobs ScrapedJob records, in source order

        Raises:
            RateLimited: the source answered 429
            SourceUnavailable: the source could not be read
            SourceConfigurationError: required configuration is missing
        """

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None,
                   accept_json: bool = True) -> httpx.Response:
        """Paced GET, retrying transport failures a bounded number of times"""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(TRANSPORT_RETRIES + 1),
            wait=wait_exponential(multiplier=self.retry_backoff_s, max=10),
            retry=retry_if_exception_type(TransportError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self.governor.send(
                    url,
                    params=params,
                    base_delay_ms=self.settings.rate_limit_ms,
                    accept_json=accept_json,
                )
        return response

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._get(url, params=params)
        except TransportError as e:
            raise SourceUnavailable(str(e)) from e

        if response.status_code != 200:
            raise SourceUnavailable(f"HTTP {response.status_code} from {url}")
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise SourceUnavailable(f"invalid JSON from {url}: {e}") from e

    async def _get_text(self, url: str) -> str:
        try:
            response = await self._get(url, accept_json=False)
        except TransportError as e:
            raise SourceUnavailable(str(e)) from e

        if response.status_code != 200:
            raise SourceUnavailable(f"HTTP {response.status_code} from {url}")
        return response.text

    # --- helpers shared by adapters ---

    def map_record(self, mapper: Callable[..., Optional[ScrapedJob]], record: Any, *args) -> Optional[ScrapedJob]:
        """Run one record through mapper, logging and skipping it if its shape is unexpected"""
        try:
            return mapper(record, *args)
        except MALFORMED_RECORD_ERRORS as e:
            self.logger.warning(f"[{self.name}] Skipping malformed record: {type(e).__name__}: {e}")
            return None

    def resolve_posted_at(self, value: Any) -> Optional[datetime]:
        """
        Convert a source timestamp to an aware UTC datetime.

        Returns None when the posting is older than the freshness window.
        Missing or unparseable dates become "now"; future dates are clamped to "now".
        """
        now = self.clock()
        posted = parse_timestamp(value)
        if posted is None:
            return now
        if posted > now:
            return now
        if posted < now - timedelta(days=self.scraper_settings.freshness_days):
            return None
        return posted


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Epoch seconds, ISO-8601 or RFC-822 to aware UTC datetime"""
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, str) and value.strip().isdigit():
            return datetime.fromtimestamp(int(value.strip()), tz=timezone.utc)
        if isinstance(value, str):
            parsed = date_parser.parse(value)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError, OSError) as e:
        logger.debug(f"[crawler] Unparseable timestamp {value!r}: {e}")
    return None


def text_field(value: Any) -> str:
    """String form of a scalar JSON value; empty for null, objects and arrays"""
    if value is None or isinstance(value, (bool, dict, list)):
        return ""
    return str(value).strip()


def object_field(value: Any, key: str) -> str:
    """text_field of value[key] when value is an object, else empty"""
    if not isinstance(value, dict):
        return ""
    return text_field(value.get(key))


def html_to_text(value: Any) -> str:
    """Strip markup from an HTML fragment and collapse whitespace"""
    value = text_field(value)
    if not value:
        return ""
    if "<" not in value:
        return " ".join(value.split())
    soup = BeautifulSoup(value, "html.parser")
    return " ".join(soup.get_text(" ").split())
