"""
Request governor for outbound source calls.

Every call made by a source adapter goes through RequestGovernor.send(), which:
- rotates through a fixed pool of browser-like identity headers (round-robin)
- paces requests with a jittered, slowly "fatiguing" delay
- enforces a hard minimum gap between requests across the whole process
- classifies 429 as RateLimited and 5xx/timeouts as TransportError

The governor never retries. Retrying a TransportError is the caller's decision;
a RateLimited response means the caller should stop using that source for the run.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MIN_GAP_SECONDS = 1.0

# Fatigue grows by FATIGUE_STEP per request and never exceeds MAX_FATIGUE
FATIGUE_STEP = 0.01
MAX_FATIGUE = 1.5

REFERRER_PROBABILITY = 0.15
RATE_LIMIT_BACKOFF_RANGE = (15.0, 45.0)

IDENTITY_POOL: List[Dict[str, str]] = [
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Sec-CH-UA-Platform": '"Windows"',
    },
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
        "Sec-CH-UA-Platform": '"Windows"',
    },
    {
        "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Sec-CH-UA-Platform": '"macOS"',
    },
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    },
    {
        "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    },
]

REFERRERS = [
    "https://www.google.com/",
    "https://www.bing.com/",
    "https://duckduckgo.com/",
    "https://news.ycombinator.com/",
]


class GovernorError(Exception):
    """Base class for classified outbound-call failures"""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class RateLimited(GovernorError):
    """Source answered 429. The owning adapter should stop calling it for this run."""

    def __init__(self, url: str, retry_after: Optional[float] = None, backoff_s: float = 30.0):
        super().__init__(url, f"rate limited (429) by {url}")
        self.retry_after = retry_after
        self.backoff_s = backoff_s


class TransportError(GovernorError):
    """Network failure, timeout or 5xx. Retryable at the caller's discretion."""

    def __init__(self, url: str, status: Optional[int] = None, detail: str = ""):
        reason = f"HTTP {status}" if status is not None else (detail or "transport failure")
        super().__init__(url, f"{reason} for {url}")
        self.status = status


@dataclass
class SessionState:
    """Per-governor request counters. Mutated only while holding the governor lock."""
    request_count: int = 0
    identity_index: int = 0
    last_request_at: Optional[float] = None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        logger.debug(f"[net] Ignoring non-numeric Retry-After header: {value}")
        return None


class RequestGovernor:
    """Paced, identity-rotating HTTP client shared by all adapters of one process"""

    def __init__(
        self,
        state: Optional[SessionState] = None,
        min_gap_s: float = DEFAULT_MIN_GAP_SECONDS,
        timeout_s: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
        identities: Optional[List[Dict[str, str]]] = None,
    ):
        self.state = state or SessionState()
        self.min_gap_s = max(0.0, min_gap_s)
        self.timeout = httpx.Timeout(timeout_s)
        self._transport = transport
        self._rng = rng or random.Random()
        self._identities = identities or IDENTITY_POOL
        self._lock = asyncio.Lock()
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self):
        """Close the underlying connection pool"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def fatigue_factor(self, request_count: int) -> float:
        """Delay multiplier that grows with the number of requests already sent"""
        return min(MAX_FATIGUE, 1.0 + request_count * FATIGUE_STEP)

    def compute_delay(self, base_delay_s: float, request_count: int) -> float:
        """base * fatigue * uniform(0.5, 1.0)"""
        if base_delay_s <= 0:
            return 0.0
        jitter = self._rng.uniform(0.5, 1.0)
        return base_delay_s * self.fatigue_factor(request_count) * jitter

    def _next_identity(self) -> Dict[str, str]:
        identity = self._identities[self.state.identity_index % len(self._identities)]
        self.state.identity_index = (self.state.identity_index + 1) % len(self._identities)
        return identity

    def _build_headers(
        self,
        identity: Dict[str, str],
        accept_json: bool,
        extra: Optional[Dict[str, str]] = None,
    ) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/plain, */*" if accept_json
            else "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Cache-Control": "max-age=0",
            "Sec-Fetch-Dest": "empty" if accept_json else "document",
            "Sec-Fetch-Mode": "cors" if accept_json else "navigate",
            "Sec-Fetch-Site": "none",
        }
        headers.update(identity)

        if self._rng.random() < REFERRER_PROBABILITY:
            headers["Referer"] = self._rng.choice(REFERRERS)

        if extra:
            headers.update(extra)
        return headers

    async def _pace(self, base_delay_s: float) -> Dict[str, str]:
        """
        Sleep the caller's own jittered delay, then claim the next identity.

        Per-caller delays overlap across concurrently running adapters; only
        the process-wide minimum gap and the session counters are serialized.
        """
        delay = self.compute_delay(base_delay_s, self.state.request_count)
        if delay > 0:
            logger.debug(f"[net] Pacing request #{self.state.request_count + 1}: sleeping {delay:.2f}s")
            await asyncio.sleep(delay)

        async with self._lock:
            if self.state.last_request_at is not None:
                gap_wait = self.min_gap_s - (time.monotonic() - self.state.last_request_at)
                if gap_wait > 0:
                    await asyncio.sleep(gap_wait)

            identity = self._next_identity()
            self.state.request_count += 1
            self.state.last_request_at = time.monotonic()
            return identity

    async def send(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        base_delay_ms: int = 0,
        accept_json: bool = True,
    ) -> httpx.Response:
        """
        Issue a paced GET request.

        Returns:
            The response for any status below 500 other than 429.

        Raises:
            RateLimited: on HTTP 429
            TransportError: on timeouts, connection failures and 5xx
        """
        identity = await self._pace(base_delay_ms / 1000.0)
        request_headers = self._build_headers(identity, accept_json, headers)

        start_time = time.time()
        try:
            response = await self._get_client().get(url, params=params, headers=request_headers)
        except httpx.TimeoutException as e:
            logger.warning(f"[net] Timeout fetching {url}: {e}")
            raise TransportError(url, detail=f"timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"[net] Transport error fetching {url}: {e}")
            raise TransportError(url, detail=str(e)) from e

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[net] GET {response.status_code} {url} ({len(response.content)} bytes, {elapsed_ms}ms)")

        if response.status_code == 429:
            backoff = self._rng.uniform(*RATE_LIMIT_BACKOFF_RANGE)
            raise RateLimited(
                url,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                backoff_s=backoff,
            )
        if response.status_code >= 500:
            raise TransportError(url, status=response.status_code)

        return response
