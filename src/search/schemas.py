"""
Pydantic schemas for the Search module: the insight record produced by the
extraction oracle, and the request/response bodies of the search API.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALLOWED_INDUSTRIES = (
    "AI",
    "Logistics",
    "Healthcare",
    "Fintech",
    "Retail",
    "Real Estate",
    "Transportation",
    "HR Tech",
    "Cybersecurity",
    "EdTech",
    "Marketing",
    "Sales",
    "Productivity",
    "Communication",
    "Customer Support",
    "DevTools",
    "Vertical SaaS",
    "Marketplace",
    "E Commerce",
    "Hardware Enabled SaaS",
)

DEFAULT_INDUSTRY = "Vertical SaaS"

_INDUSTRY_LOOKUP = {
    industry.lower().replace("-", " "): industry for industry in ALLOWED_INDUSTRIES
}


def match_industry(value: Any) -> Optional[str]:
    """Map free-form industry text onto ALLOWED_INDUSTRIES (case/hyphen-insensitive)."""
    if not isinstance(value, str):
        return None
    key = " ".join(value.strip().lower().replace("-", " ").split())
    return _INDUSTRY_LOOKUP.get(key)


def fit_band(score: Optional[float]) -> Optional[str]:
    if score is None:
        return None
    if score >= 8:
        return "high"
    if score >= 5:
        return "medium"
    return "low"


class InsightPayload(BaseModel):
    """Structured company insight returned by the extraction oracle."""
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    website: str = ""
    summary: str = ""
    product_offering: str = "N/A"
    customer_segment: str = "N/A"
    tech_stack: List[str] = Field(default_factory=list)
    estimated_headcount: str = "N/A"
    hq_location: str = "N/A"
    pricing_model: str = "N/A"
    strengths: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    acquisition_fit_score: float = 0.0
    acquisition_fit_reason: str = "Not specified"
    top_competitors: List[str] = Field(default_factory=list)
    primary_industry: str = DEFAULT_INDUSTRY
    secondary_industry: Optional[str] = None

    @field_validator("tech_stack", "strengths", "risks", "opportunities", "top_competitors", mode="before")
    @classmethod
    def coerce_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return [str(item).strip() for item in v if item is not None and str(item).strip()]

    @field_validator(
        "summary", "product_offering", "customer_segment", "estimated_headcount",
        "hq_location", "pricing_model", "acquisition_fit_reason", mode="before",
    )
    @classmethod
    def coerce_text(cls, v, info):
        if v is None or (isinstance(v, str) and not v.strip()):
            return cls.model_fields[info.field_name].default
        return str(v).strip()

    @field_validator("name", "website", mode="before")
    @classmethod
    def coerce_identity(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("acquisition_fit_score", mode="before")
    @classmethod
    def clamp_score(cls, v):
        if v is None or v == "":
            return 0.0
        return min(10.0, max(0.0, float(v)))

    @field_validator("primary_industry", mode="before")
    @classmethod
    def coerce_primary_industry(cls, v):
        return match_industry(v) or DEFAULT_INDUSTRY

    @field_validator("secondary_industry", mode="before")
    @classmethod
    def coerce_secondary_industry(cls, v):
        return match_industry(v)

    def for_company(self, name: str, website: Optional[str]) -> "InsightPayload":
        """Copy with the identity fields of a specific candidate."""
        return self.model_copy(update={"name": name, "website": website or ""}, deep=True)


# --- API bodies ---

class SearchRequest(BaseModel):
    query: str = Field(..., min_length=2, max_length=200)
    owner_id: str = Field("default", min_length=1, max_length=100)
    desired_count: Optional[int] = Field(None, ge=1, le=20)
    randomize: bool = True


class CompanyOut(BaseModel):
    id: int
    search_id: int
    name: str
    website: Optional[str] = None
    domain: str = ""
    status: str
    summary: Optional[str] = None
    acquisition_fit_score: Optional[float] = None
    fit_band: Optional[str] = None
    primary_industry: Optional[str] = None
    favicon_url: Optional[str] = None
    error_message: Optional[str] = None
    is_saved: bool = False
    raw_json: Dict[str, Any] = Field(default_factory=dict)


class SearchOut(BaseModel):
    search_id: int
    query: str
    niche_key: str
    global_opportunities: Optional[str] = None
    companies: List[CompanyOut] = Field(default_factory=list)
    selection: Optional[Dict[str, Any]] = None


class SearchHistoryItem(BaseModel):
    id: int
    query: str
    created_at: Optional[str] = None
    company_count: int = 0
