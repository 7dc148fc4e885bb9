"""Public service interface for the Search module."""
import logging
import random
from typing import Optional, Protocol, List

from src.core.config import settings
from src.search.cache import ExtractionCacheProtocol
from src.search.data_types import CompanyCandidate, SearchRunResult
from src.search.diversity import derive_niche_key, select_diverse_companies
from src.search.orchestrator import (
    ContactsProtocol,
    EnrichmentOrchestrator,
    ExtractorProtocol,
    InsightsProtocol,
    ScraperProtocol,
)
from src.search.store import SearchStore

logger = logging.getLogger(__name__)

NO_COMPANIES_MESSAGE = "No companies found for this query yet."


class DiscoveryProtocol(Protocol):
    async def discover(self, query: str, temperature: float = 0.2) -> List[CompanyCandidate]: ...


class SearchService:
    """
    Runs one market search end to end:

        discover -> select (seen/saved aware) -> enrich -> record niche history

    Request-level problems (discovery raising, nothing discovered) come back
    as an empty SearchRunResult with a message, never as an exception.
    """

    def __init__(
        self,
        discovery: DiscoveryProtocol,
        scraper: ScraperProtocol,
        extractor: ExtractorProtocol,
        store: SearchStore,
        contacts: Optional[ContactsProtocol] = None,
        insights: Optional[InsightsProtocol] = None,
        cache: Optional[ExtractionCacheProtocol] = None,
        concurrency: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.discovery = discovery
        self.store = store
        self.rng = rng
        self.orchestrator = EnrichmentOrchestrator(
            scraper=scraper,
            extractor=extractor,
            store=store,
            contacts=contacts,
            insights=insights,
            cache=cache,
            concurrency=concurrency,
        )

    async def drain(self) -> None:
        await self.orchestrator.drain()

    async def run_search(
        self,
        query: str,
        owner_id: str = "default",
        desired_count: Optional[int] = None,
        randomize: bool = True,
    ) -> SearchRunResult:
        query = (query or "").strip()
        if len(query) < 2:
            raise ValueError("Query must be at least 2 characters")

        desired_count = desired_count if desired_count is not None else settings.desired_company_count
        niche_key = derive_niche_key(query)
        search_id = await self.store.create_search(owner_id, query, niche_key)
        result = SearchRunResult(search_id=search_id, query=query, niche_key=niche_key)

        temperature = settings.randomized_discovery_temperature if randomize else settings.discovery_temperature
        try:
            candidates = await self.discovery.discover(query, temperature=temperature)
        except Exception as e:
            logger.error(f"Discovery failed for '{query}': {e}")
            candidates = []

        if not candidates:
            logger.info(f"No companies discovered for '{query}'")
            result.message = NO_COMPANIES_MESSAGE
            await self.store.update_global_opportunities(search_id, NO_COMPANIES_MESSAGE)
            return result

        # A failed lookup falls back to an empty set
        try:
            seen_domains = await self.store.get_seen_domains(owner_id, niche_key)
        except Exception as e:
            logger.warning(f"Failed to load seen domains for {owner_id}/{niche_key}: {e}")
            seen_domains = frozenset()

        try:
            saved_domains = await self.store.get_saved_domains(owner_id)
        except Exception as e:
            logger.warning(f"Failed to load saved domains for {owner_id}: {e}")
            saved_domains = frozenset()

        selection = select_diverse_companies(
            candidates,
            seen_domains,
            desired_count,
            randomize=randomize,
            saved_domains=saved_domains,
            rng=self.rng,
        )
        result.selection = selection.stats

        run = await self.orchestrator.run(search_id, owner_id, query, selection.selected)
        result.outcomes = run.outcomes
        result.background_tasks = run.background_tasks

        try:
            await self.store.record_seen_domains(owner_id, niche_key, [c.website for c in selection.selected])
        except Exception as e:
            logger.error(f"Failed to record niche history for search {search_id}: {e}")

        logger.info(
            f"Search {search_id} '{query}' [{niche_key}]: {len(run.successes)}/{len(run.outcomes)} enriched"
        )
        return result


def build_search_service(scraper: ScraperProtocol, store: Optional[SearchStore] = None) -> SearchService:
    """SearchService wired to the LLM oracles, Apify contacts and the shared cache."""
    from src.search.agents import AggregateInsightAgent, CompanyDiscoveryAgent, InsightExtractionAgent
    from src.search.contacts import ApifyContactScraper
    from src.core.ai_client import LLMClient

    llm = LLMClient.from_settings()
    return SearchService(
        discovery=CompanyDiscoveryAgent(llm),
        scraper=scraper,
        extractor=InsightExtractionAgent(llm),
        store=store or SearchStore(),
        contacts=ApifyContactScraper(),
        insights=AggregateInsightAgent(llm),
    )
