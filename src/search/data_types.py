"""
Lightweight data types for the discovery-to-enrichment pipeline.

These are transfer objects (Dataclasses), NOT database models.
For SQLAlchemy ORM models, see src/search/database.py.
"""
import asyncio
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Literal, Optional, Union

from src.search.schemas import InsightPayload

PageType = Literal["home", "product", "pricing"]


@dataclass(frozen=True)
class CompanyCandidate:
    """Company returned by the discovery oracle, not yet enriched."""
    name: str
    website: Optional[str] = None
    description: str = ""
    industry: str = ""
    country: str = ""


@dataclass
class SelectionStats:
    requested: int
    fresh: int = 0
    repeat_unseen_saved: int = 0  # seen for this niche, not saved
    repeat_seen: int = 0  # saved-domain fallback picks
    fallback_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SelectionResult:
    selected: List[CompanyCandidate]
    stats: SelectionStats


@dataclass
class ScrapePage:
    type: PageType
    url: str
    text: str


@dataclass
class ScrapeResult:
    pages: List[ScrapePage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def combined_text(self, budget: int) -> str:
        """Page texts labelled by type, truncated to `budget` characters."""
        combined = "\n\n".join(f"[{page.type.upper()}]\n{page.text}" for page in self.pages)
        return combined[:budget]


@dataclass
class CompanySuccess:
    name: str
    website: Optional[str]
    description: str
    industry: str
    country: str
    extracted: InsightPayload
    company_id: Optional[int] = None
    from_cache: bool = False

    status = "success"


@dataclass
class CompanyFailure:
    name: str
    website: Optional[str]
    description: str
    error_message: str

    status = "failed"


ProcessedCompanyOutcome = Union[CompanySuccess, CompanyFailure]


@dataclass
class Person:
    """Contact discovered for a company."""
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "Unknown"
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    source: str = "apify"
    confidence_score: Optional[float] = None
    is_ceo: bool = False
    is_founder: bool = False
    is_executive: bool = False

    @property
    def is_reachable(self) -> bool:
        return bool(self.email or self.phone)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EnrichmentRun:
    """Outcomes of one orchestrator run plus the detached tasks it spawned."""
    outcomes: List[ProcessedCompanyOutcome]
    background_tasks: List[asyncio.Task] = field(default_factory=list)

    @property
    def successes(self) -> List[CompanySuccess]:
        return [o for o in self.outcomes if isinstance(o, CompanySuccess)]

    @property
    def failures(self) -> List[CompanyFailure]:
        return [o for o in self.outcomes if isinstance(o, CompanyFailure)]


@dataclass
class SearchRunResult:
    search_id: Optional[int]
    query: str
    niche_key: str
    outcomes: List[ProcessedCompanyOutcome] = field(default_factory=list)
    selection: Optional[SelectionStats] = None
    background_tasks: List[asyncio.Task] = field(default_factory=list)
    message: Optional[str] = None
