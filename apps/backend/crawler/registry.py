"""
Adapter registry: maps source keys to adapter classes and builds the enabled set.
"""
import logging
from typing import Dict, List, Type

from app.config import ScraperSettings
from core.net import RequestGovernor
from crawler.adzuna import AdzunaAdapter
from crawler.base import SourceAdapter
from crawler.hackernews import HackerNewsAdapter
from crawler.remoteok import RemoteOKAdapter
from crawler.weworkremotely import WeWorkRemotelyAdapter

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: Dict[str, Type[SourceAdapter]] = {
    "remoteok": RemoteOKAdapter,
    "adzuna": AdzunaAdapter,
    "weworkremotely": WeWorkRemotelyAdapter,
    "hackernews": HackerNewsAdapter,
}


def build_adapters(settings: ScraperSettings, governor: RequestGovernor, **kwargs) -> List[SourceAdapter]:
    """Instantiate every enabled adapter with its own source settings"""
    adapters: List[SourceAdapter] = []
    for key, adapter_cls in ADAPTER_CLASSES.items():
        source_settings = getattr(settings.sources, key)
        if not source_settings.enabled:
            logger.info(f"[registry] {adapter_cls.display_name} disabled")
            continue
        adapters.append(adapter_cls(governor, source_settings, scraper_settings=settings, **kwargs))

    logger.info(f"[registry] Enabled sources: {', '.join(a.display_name for a in adapters) or 'none'}")
    return adapters
