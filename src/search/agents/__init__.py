"""
LLM-backed oracles used by the search pipeline.
"""
from .discovery_agent import CompanyDiscoveryAgent
from .extraction_agent import ExtractionError, InsightExtractionAgent
from .insights_agent import FALLBACK_INSIGHT, AggregateInsightAgent

__all__ = [
    "CompanyDiscoveryAgent",
    "InsightExtractionAgent",
    "ExtractionError",
    "AggregateInsightAgent",
    "FALLBACK_INSIGHT",
]
