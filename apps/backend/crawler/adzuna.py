"""
Adzuna multi-country job search adapter
"""
from typing import Any, Dict, List, Optional

from app.config import AdzunaQuery, AdzunaSettings
from core.normalize import country_name, detect_workplace_type, map_job_type, parse_salary_amount
from crawler.base import (
    SourceAdapter,
    SourceConfigurationError,
    SourceUnavailable,
    html_to_text,
    object_field,
    text_field,
)
from pipeline.models import ScrapedJob

ADZUNA_SEARCH_URL = "https://api.adzuna.com/v1/api/jobs/{country}/search/1"


class AdzunaAdapter(SourceAdapter):
    """
    Runs a prioritized list of (country, term, city) searches until max_jobs
    is reached. A failed query is logged and skipped; a 429 ends the source.
    """

    name = "adzuna"
    display_name = "Adzuna"
    settings: AdzunaSettings

    async def fetch(self) -> List[ScrapedJob]:
        if not self.settings.has_credentials:
            raise SourceConfigurationError("ADZUNA_APP_ID and ADZUNA_APP_KEY are required")

        jobs: List[ScrapedJob] = []
        seen = set()
        failed_queries = 0
        queries = self.settings.prioritized_queries()

        for query in queries:
            remaining = self.max_jobs - len(jobs)
            if remaining <= 0:
                break

            try:
                results = await self._search(query, min(remaining, self.settings.max_jobs_per_query))
            except SourceUnavailable as e:
                failed_queries += 1
                self.logger.warning(f"[adzuna] {query.country}/{query.where or '-'}/{query.what}: {e}")
                continue

            for result in results:
                if len(jobs) >= self.max_jobs:
                    break
                if not isinstance(result, dict):
                    continue
                job = self.map_record(self._to_job, result, query)
                if job and job.external_id not in seen:
                    seen.add(job.external_id)
                    jobs.append(job)

        if failed_queries and failed_queries == len(queries):
            raise SourceUnavailable(f"all {failed_queries} Adzuna queries failed")

        self.logger.info(f"[adzuna] Mapped {len(jobs)} jobs from {len(queries)} queries ({failed_queries} failed)")
        return jobs

    async def _search(self, query: AdzunaQuery, per_page: int) -> List[Dict[str, Any]]:
        params = {
            "app_id": self.settings.app_id,
            "app_key": self.settings.app_key,
            "what": query.what,
            "results_per_page": per_page,
            "sort_by": "date",
        }
        if query.where:
            params["where"] = query.where

        data = await self._get_json(ADZUNA_SEARCH_URL.format(country=query.country), params=params)
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise SourceUnavailable("response has no results list")

        self.logger.info(
            f"[adzuna] {query.country}/{query.where or '-'}/{query.what}: "
            f"{len(results)} results ({data.get('count', 0)} available)"
        )
        return results

    def _to_job(self, result: Dict[str, Any], query: AdzunaQuery) -> Optional[ScrapedJob]:
        job_id = text_field(result.get("id"))
        title = html_to_text(result.get("title"))
        company = object_field(result.get("company"), "display_name")
        if not job_id or not title or not company:
            return None

        posted_at = self.resolve_posted_at(result.get("created"))
        if posted_at is None:
            return None

        location = object_field(result.get("location"), "display_name")
        if not location:
            location = f"{query.where.title()}, {country_name(query.country)}" if query.where else country_name(query.country)
        description = html_to_text(result.get("description")) or f"{title} position"
        contract = text_field(result.get("contract_time")) or text_field(result.get("contract_type"))
        category = object_field(result.get("category"), "label")

        return ScrapedJob(
            external_id=f"adzuna_{query.country}_{job_id}",
            title=title,
            company=company,
            source=f"Adzuna_{query.country.upper()}",
            location=location,
            description=description,
            application_url=text_field(result.get("redirect_url")) or None,
            salary_min=parse_salary_amount(result.get("salary_min")),
            salary_max=parse_salary_amount(result.get("salary_max")),
            job_type=map_job_type(contract),
            workplace_type=detect_workplace_type(location, title, description),
            posted_at=posted_at,
            industry_hint=category if category and "job" not in category.lower() else None,
        )
