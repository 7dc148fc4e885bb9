"""
Company Discovery Agent.
Asks the LLM for companies matching a free-text market query.
"""
import logging
from typing import Any, Dict, List, Optional

from src.core.ai_client import LLMClient, parse_json_lenient
from src.core.config import settings
from src.core.utils import normalize_string
from src.search.data_types import CompanyCandidate

logger = logging.getLogger(__name__)

DISCOVERY_MAX_TOKENS = 2048

SYSTEM_PROMPT = """You are a market research analyst that finds SaaS companies.
Task: Given a market or niche query, return relevant SaaS companies, preferring vertical SaaS.
If the niche lacks clear vertical SaaS options, include the best horizontal SaaS companies for that niche instead.

Rules:
- Respond with a compact JSON array only. No prose.
- Each object must contain: name, website, reason, industry, country.
- reason briefly explains why the company fits the niche.
- Prefer companies with readily discoverable websites that can be scraped.
- Avoid duplicates."""


def _candidate_from_item(item: Dict[str, Any]) -> Optional[CompanyCandidate]:
    name = normalize_string(item.get("name"))
    if not name:
        return None
    return CompanyCandidate(
        name=name,
        website=normalize_string(item.get("website")),
        description=normalize_string(item.get("reason")) or normalize_string(item.get("description")) or "",
        industry=normalize_string(item.get("industry")) or "",
        country=normalize_string(item.get("country")) or "",
    )


class CompanyDiscoveryAgent:
    """Discovery oracle backed by the shared LLM client."""

    def __init__(self, llm: Optional[LLMClient] = None, max_companies: Optional[int] = None):
        self.llm = llm or LLMClient.from_settings()
        self.max_companies = max_companies or settings.discovery_candidate_count

    def _build_prompt(self, query: str) -> str:
        return (
            f"Return ONLY a JSON array (no prose, no markdown) of up to {self.max_companies} SaaS companies "
            f'that match this market query: "{query}". '
            'Each object must contain "name", "website", "reason", "industry" and "country".'
        )

    async def discover(self, query: str, temperature: float = 0.2) -> List[CompanyCandidate]:
        """
        Returns up to max_companies candidates. Raises on an empty or
        unparseable response; the caller decides how to degrade.
        """
        logger.info(f"Discovering companies for '{query}' (temperature={temperature})")

        raw = await self.llm.generate(
            self._build_prompt(query),
            system_prompt=SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=DISCOVERY_MAX_TOKENS,
        )

        try:
            parsed = parse_json_lenient(raw)
        except ValueError as e:
            raise ValueError(f"Failed to parse discovery response: {e}") from e

        if isinstance(parsed, dict):
            # Some models wrap the array: {"companies": [...]}
            parsed = next((v for v in parsed.values() if isinstance(v, list)), [parsed])
        if not isinstance(parsed, list):
            raise ValueError(f"Discovery response is not a JSON array (got {type(parsed).__name__})")

        candidates = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            candidate = _candidate_from_item(item)
            if candidate:
                candidates.append(candidate)
            if len(candidates) >= self.max_companies:
                break

        logger.info(f"Discovered {len(candidates)} companies for '{query}': {[c.name for c in candidates]}")
        return candidates
