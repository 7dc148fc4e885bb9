"""
Search Module - Market Discovery & Company Enrichment.
"""

from src.search.cache import ExtractionCache, extraction_cache
from src.search.diversity import derive_niche_key, select_diverse_companies
from src.search.orchestrator import EnrichmentOrchestrator
from src.search.scraper import SiteScraper, scrape_company_site
from src.search.service import SearchService, build_search_service
from src.search.store import SearchStore

__all__ = [
    "ExtractionCache",
    "extraction_cache",
    "derive_niche_key",
    "select_diverse_companies",
    "EnrichmentOrchestrator",
    "SiteScraper",
    "scrape_company_site",
    "SearchService",
    "build_search_service",
    "SearchStore",
]
