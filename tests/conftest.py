"""
Shared pytest fixtures for the market search test suite.
"""
import os

# Must be set before src.core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.core.database import Base
from src.search import database as search_database  # noqa: F401  (registers models)
from src.search.cache import ExtractionCache
from src.search.data_types import CompanyCandidate, Person, ScrapePage, ScrapeResult
from src.search.schemas import InsightPayload
from src.search.store import SearchStore


# --- Database Fixtures ---

@pytest.fixture
async def session_factory(tmp_path):
    """Async SQLite file per test; concurrent enrichment tasks each get their own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'search.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def store(session_factory):
    return SearchStore(session_factory)


# --- Fakes for the pipeline collaborators ---

class FakeScraper:
    """Returns one home page per URL; URLs in `empty` scrape to zero pages, `fail` raises."""

    def __init__(self, empty: Sequence[str] = (), fail: Sequence[str] = (), delay: float = 0.0):
        self.empty = set(empty)
        self.fail = set(fail)
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def scrape(self, base_url: Optional[str]) -> ScrapeResult:
        self.calls.append(base_url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if base_url in self.fail:
                raise RuntimeError(f"connection reset by {base_url}")
            if base_url in self.empty:
                return ScrapeResult(pages=[], errors=[f"Homepage fetch failed ({base_url}): Request failed with status 503"])
            return ScrapeResult(pages=[
                ScrapePage(type="home", url=base_url, text=f"Homepage of {base_url}"),
                ScrapePage(type="pricing", url=f"{base_url}/pricing", text="Plans from $49/month"),
            ])
        finally:
            self.in_flight -= 1


class FakeExtractor:
    """Builds a payload from the inputs; names in `fail` raise."""

    def __init__(self, fail: Sequence[str] = (), score: float = 7.0):
        self.fail = set(fail)
        self.score = score
        self.calls: List[Dict[str, str]] = []

    async def extract(self, company_name: str, website: str, combined_text: str) -> InsightPayload:
        self.calls.append({"name": company_name, "website": website, "text": combined_text})
        await asyncio.sleep(0)
        if company_name in self.fail:
            raise ValueError(f"Failed to parse extraction response for {company_name}")
        return InsightPayload(
            name=company_name,
            website=website,
            summary=f"{company_name} sells vertical software.",
            acquisition_fit_score=self.score,
            primary_industry="Healthcare",
        )


class FakeContacts:
    def __init__(self, people: Optional[List[Person]] = None, fail: bool = False):
        self.people = people if people is not None else [
            Person(full_name="Jane Doe", first_name="Jane", last_name="Doe", email="jane@example.com", is_ceo=True),
            Person(full_name="No Contact"),
        ]
        self.fail = fail
        self.calls: List[str] = []

    async def scrape_people(self, website: Optional[str]) -> List[Person]:
        self.calls.append(website)
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("Apify run failed with status 500")
        return list(self.people)


class FakeInsights:
    def __init__(self, text: str = "Clinics want integrated scheduling and billing.", fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls: List[tuple] = []

    async def aggregate_insight(self, query: str, companies) -> str:
        self.calls.append((query, list(companies)))
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("LLM unavailable")
        return self.text


class FakeDiscovery:
    def __init__(self, candidates: Optional[List[CompanyCandidate]] = None, fail: bool = False):
        self.candidates = candidates or []
        self.fail = fail
        self.calls: List[tuple] = []

    async def discover(self, query: str, temperature: float = 0.2) -> List[CompanyCandidate]:
        self.calls.append((query, temperature))
        if self.fail:
            raise ValueError("Failed to parse discovery response")
        return list(self.candidates)


@pytest.fixture
def fake_scraper():
    return FakeScraper()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def fake_contacts():
    return FakeContacts()


@pytest.fixture
def fake_insights():
    return FakeInsights()


@pytest.fixture
def fakes():
    """The fake classes, for tests that need non-default configuration."""
    return {
        "scraper": FakeScraper,
        "extractor": FakeExtractor,
        "contacts": FakeContacts,
        "insights": FakeInsights,
        "discovery": FakeDiscovery,
    }


@pytest.fixture
def cache():
    return ExtractionCache(ttl_seconds=3600, max_entries=50)


# --- Mock Data Fixtures ---

@pytest.fixture
def make_candidate():
    """Factory fixture for discovery candidates."""
    def _make(name="Acme Dental", website="https://acmedental.com", description="Practice management for dentists"):
        return CompanyCandidate(
            name=name,
            website=website,
            description=description,
            industry="Healthcare",
            country="US",
        )
    return _make


@pytest.fixture
def sample_payload():
    return InsightPayload(
        name="Acme Dental",
        website="https://acmedental.com",
        summary="Acme Dental builds practice management software for dental clinics.",
        product_offering="Scheduling, billing and patient records",
        customer_segment="Independent dental practices",
        tech_stack=["React", "PostgreSQL"],
        acquisition_fit_score=8,
        acquisition_fit_reason="Sticky vertical workflow with recurring revenue",
        primary_industry="Healthcare",
    )
