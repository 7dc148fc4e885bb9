"""
Contact discovery via the Apify email-domain scraper actor.

- ApifyContactScraper: starts an actor run for a domain, waits for it, then
  reads the run's default dataset.
- map_people: raw dataset rows -> Person records.

A missing APIFY_TOKEN disables the scraper (empty results, one warning).
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp

from src.core.config import settings
from src.core.utils import normalize_domain, normalize_string
from src.search.data_types import Person

logger = logging.getLogger(__name__)

# Seconds Apify holds the run request open while the actor finishes
RUN_WAIT_SECONDS = 120


def _split_name(full_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not full_name:
        return None, None
    parts = full_name.split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


def _first_string(entry: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str):
            value = normalize_string(value)
            if value:
                return value
    return None


def map_person(entry: Dict[str, Any]) -> Optional[Person]:
    """Map one dataset row; None when it carries neither email nor phone."""
    if not isinstance(entry, dict):
        return None

    email = _first_string(entry, "email")
    phone = _first_string(entry, "phone")
    if not email and not phone:
        return None

    full_name = _first_string(entry, "fullName", "name", "personName")
    first_name, last_name = _split_name(full_name)
    confidence = entry.get("confidence")

    return Person(
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
        role=_first_string(entry, "role", "title", "position") or "Unknown",
        email=email,
        phone=phone,
        linkedin_url=_first_string(entry, "linkedinUrl", "linkedin"),
        source="apify",
        confidence_score=float(confidence) if isinstance(confidence, (int, float)) else None,
        is_ceo=bool(entry.get("isCeo")),
        is_founder=bool(entry.get("isFounder")),
        is_executive=bool(entry.get("isExecutive")),
    )


def map_people(entries: Iterable[Dict[str, Any]]) -> List[Person]:
    people = []
    for entry in entries or []:
        person = map_person(entry)
        if person:
            people.append(person)
    return people


class ApifyContactScraper:
    """
    Calls the Apify REST API with aiohttp.

    Use as async context manager to share one session across lookups:

        async with ApifyContactScraper() as scraper:
            people = await scraper.scrape_people("https://example.com")

    Outside a context, each lookup opens and closes its own session.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        actor_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = RUN_WAIT_SECONDS + 30,
    ):
        self.token = token if token is not None else settings.apify_token
        self.actor_id = actor_id or settings.apify_actor_id
        self.base_url = (base_url or settings.apify_api_base).rstrip("/")
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(headers={"Accept": "application/json"})
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
        return False

    async def _request_json(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        async def _request() -> Any:
            async with session.request(method, url, params=params, json=json) as response:
                if not 200 <= response.status < 300:
                    text = await response.text()
                    raise RuntimeError(f"{method} {url} -> {response.status}: {text[:300]}")
                return await response.json(content_type=None)

        try:
            return await asyncio.wait_for(_request(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise RuntimeError(f"{method} {url} timed out after {self.timeout:g}s")

    async def run_email_scraper(self, session: aiohttp.ClientSession, domains: List[str]) -> List[Dict[str, Any]]:
        """Start the actor for the given domains and return its dataset rows."""
        auth = {"token": self.token}
        run = await self._request_json(
            session,
            "POST",
            f"{self.base_url}/acts/{self.actor_id}/runs",
            params={**auth, "waitForFinish": RUN_WAIT_SECONDS},
            json={"domains": domains},
        )
        dataset_id = ((run or {}).get("data") or {}).get("defaultDatasetId")
        if not dataset_id:
            logger.warning(f"Apify run for {domains} returned no dataset id")
            return []

        items = await self._request_json(
            session,
            "GET",
            f"{self.base_url}/datasets/{dataset_id}/items",
            params={**auth, "clean": 1},
        )
        return items if isinstance(items, list) else []

    async def scrape_people(self, website: Optional[str]) -> List[Person]:
        """
        People found for a company website. Empty when the token is missing,
        the website has no domain or the actor returns nothing. Request
        failures raise; the caller owns the error boundary.
        """
        if not self.enabled:
            logger.warning("APIFY_TOKEN is missing, skipping contact discovery")
            return []

        domain = normalize_domain(website)
        if not domain:
            return []

        if self.session is not None:
            rows = await self.run_email_scraper(self.session, [domain])
        else:
            async with aiohttp.ClientSession(headers={"Accept": "application/json"}) as session:
                rows = await self.run_email_scraper(session, [domain])

        people = map_people(rows)
        logger.info(f"Apify returned {len(rows)} rows for {domain}, {len(people)} reachable people")
        return people
