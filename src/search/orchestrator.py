"""
Enrichment Orchestrator.

Turns a selected list of candidates into one outcome per candidate:

    cache check -> scrape -> extract -> cache write -> persist

Candidates run in consecutive chunks of `concurrency`; a chunk must finish
before the next one starts. A failing candidate becomes a CompanyFailure and
never affects its siblings.

Contact discovery (per saved company) and the aggregate insight (per run) are
detached tasks. They are tracked in `background_tasks` so callers can
`await orchestrator.drain()`.
"""
import asyncio
import logging
from typing import Awaitable, List, Optional, Protocol, Sequence, Set

from src.core.config import settings
from src.search.agents.insights_agent import FALLBACK_INSIGHT
from src.search.cache import ExtractionCacheProtocol, extraction_cache
from src.search.data_types import (
    CompanyCandidate,
    CompanyFailure,
    CompanySuccess,
    EnrichmentRun,
    Person,
    ProcessedCompanyOutcome,
    ScrapeResult,
)
from src.search.schemas import InsightPayload
from src.search.store import SearchStoreProtocol

logger = logging.getLogger(__name__)

NO_WEBSITE_ERROR = "Company has no website"
NO_CONTENT_ERROR = "No content could be scraped from the site"


class ScraperProtocol(Protocol):
    async def scrape(self, base_url: Optional[str]) -> ScrapeResult: ...


class ExtractorProtocol(Protocol):
    async def extract(self, company_name: str, website: str, combined_text: str) -> InsightPayload: ...


class ContactsProtocol(Protocol):
    async def scrape_people(self, website: Optional[str]) -> List[Person]: ...


class InsightsProtocol(Protocol):
    async def aggregate_insight(self, query: str, companies: Sequence) -> str: ...


class EnrichmentOrchestrator:
    def __init__(
        self,
        scraper: ScraperProtocol,
        extractor: ExtractorProtocol,
        store: SearchStoreProtocol,
        contacts: Optional[ContactsProtocol] = None,
        insights: Optional[InsightsProtocol] = None,
        cache: Optional[ExtractionCacheProtocol] = None,
        concurrency: Optional[int] = None,
        char_budget: Optional[int] = None,
    ):
        self.scraper = scraper
        self.extractor = extractor
        self.store = store
        self.contacts = contacts
        self.insights = insights
        self.cache = cache if cache is not None else extraction_cache
        self.concurrency = concurrency or settings.enrichment_concurrency
        self.char_budget = char_budget or settings.extraction_char_budget
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._background_tasks: Set[asyncio.Task] = set()

    @property
    def background_tasks(self) -> Set[asyncio.Task]:
        return set(self._background_tasks)

    def _spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every detached task spawned so far (including ones spawned while waiting)."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # --- Per-company pipeline ---

    async def _get_payload(self, candidate: CompanyCandidate) -> tuple:
        """(payload, from_cache) for a candidate with a website."""
        cached = await self.cache.get(candidate.website)
        if cached is not None:
            return cached.for_company(candidate.name, candidate.website), True

        scrape = await self.scraper.scrape(candidate.website)
        if not scrape.pages:
            if scrape.errors:
                logger.info(f"Scrape of {candidate.website} produced no pages: {scrape.errors}")
            raise ValueError(NO_CONTENT_ERROR)

        payload = await self.extractor.extract(
            candidate.name,
            candidate.website,
            scrape.combined_text(self.char_budget),
        )

        try:
            await self.cache.set(candidate.website, payload)
        except Exception as e:
            logger.warning(f"Extraction cache write failed for {candidate.website}: {e}")

        return payload, False

    async def _process_company(self, search_id: int, owner_id: str, candidate: CompanyCandidate) -> ProcessedCompanyOutcome:
        try:
            if not candidate.website or not candidate.website.strip():
                raise ValueError(NO_WEBSITE_ERROR)

            payload, from_cache = await self._get_payload(candidate)

            outcome = CompanySuccess(
                name=candidate.name,
                website=candidate.website,
                description=candidate.description,
                industry=candidate.industry,
                country=candidate.country,
                extracted=payload,
                from_cache=from_cache,
            )
            outcome.company_id = await self.store.save_company(search_id, owner_id, outcome)

            if self.contacts is not None and outcome.company_id is not None:
                self._spawn(
                    self._discover_contacts(outcome.company_id, owner_id, candidate),
                    name=f"contacts:{candidate.name}",
                )

            logger.info(f"Processed {candidate.name} ({'cache' if from_cache else 'scraped'})")
            return outcome

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Failed to process {candidate.name} ({candidate.website}): {message}")
            return CompanyFailure(
                name=candidate.name,
                website=candidate.website,
                description=candidate.description,
                error_message=message,
            )

    # --- Detached work ---

    async def _discover_contacts(self, company_id: int, owner_id: str, candidate: CompanyCandidate) -> None:
        try:
            people = await self.contacts.scrape_people(candidate.website)
            reachable = [p for p in people if p.is_reachable]
            if reachable:
                await self.store.insert_people(company_id, owner_id, reachable)
        except Exception as e:
            logger.error(f"Contact discovery failed for {candidate.name}: {e}")

    async def _write_aggregate_insight(self, search_id: int, query: str, outcomes: Sequence[ProcessedCompanyOutcome]) -> None:
        try:
            companies = [(o.name, o.description) for o in outcomes]
            text = await self.insights.aggregate_insight(query, companies)
            await self.store.update_global_opportunities(search_id, (text or "").strip() or FALLBACK_INSIGHT)
        except Exception as e:
            logger.error(f"Aggregate insight failed for search {search_id}: {e}")

    # --- Entry point ---

    async def run(
        self,
        search_id: int,
        owner_id: str,
        query: str,
        candidates: Sequence[CompanyCandidate],
    ) -> EnrichmentRun:
        candidates = list(candidates)
        outcomes: List[ProcessedCompanyOutcome] = []
        spawned_before = set(self._background_tasks)

        for start in range(0, len(candidates), self.concurrency):
            chunk = candidates[start:start + self.concurrency]
            logger.info(
                f"Enriching chunk {start // self.concurrency + 1} "
                f"({len(chunk)} companies) for search {search_id}"
            )
            outcomes.extend(
                await asyncio.gather(*(self._process_company(search_id, owner_id, c) for c in chunk))
            )

        run = EnrichmentRun(outcomes=outcomes)

        if run.failures:
            try:
                await self.store.save_failed_companies(search_id, owner_id, run.failures)
            except Exception as e:
                logger.error(f"Failed to persist {len(run.failures)} failed companies for search {search_id}: {e}")

        if self.insights is not None and outcomes:
            self._spawn(
                self._write_aggregate_insight(search_id, query, outcomes),
                name=f"insight:{search_id}",
            )

        run.background_tasks = [t for t in self._background_tasks if t not in spawned_before]
        logger.info(
            f"Search {search_id}: {len(run.successes)} succeeded, {len(run.failures)} failed, "
            f"{len(run.background_tasks)} background tasks pending"
        )
        return run
