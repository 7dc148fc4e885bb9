"""Shared dependencies for the market search API routers."""

import logging
from functools import lru_cache

from src.search.cache import ExtractionCache, extraction_cache
from src.search.scraper import SiteScraper
from src.search.service import SearchService, build_search_service
from src.search.store import SearchStore

logger = logging.getLogger(__name__)


# --- Search ---

@lru_cache(maxsize=1)
def get_search_store() -> SearchStore:
    return SearchStore()


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    """
    Process-wide service. Its orchestrator holds the detached contact/insight
    tasks, so it has to outlive the request that spawned them. The scraper is
    not entered as a context, so every scrape uses its own aiohttp session.
    """
    logger.info("Building search service")
    return build_search_service(SiteScraper(), store=get_search_store())


def get_extraction_cache() -> ExtractionCache:
    return extraction_cache
