"""
Aggregate Insight Agent.
Writes a short market-opportunity narrative for a whole search.
"""
import logging
from typing import Optional, Sequence, Tuple

from src.core.ai_client import LLMClient

logger = logging.getLogger(__name__)

INSIGHTS_MAX_TOKENS = 1024
FALLBACK_INSIGHT = "No opportunities identified."

SYSTEM_PROMPT = "You are an expert market analyst for vertical SaaS categories."


class AggregateInsightAgent:
    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient.from_settings()

    async def aggregate_insight(self, query: str, companies: Sequence[Tuple[str, str]]) -> str:
        """companies: (name, description) pairs."""
        company_list = "\n".join(f"- {name}: {description}" for name, description in companies)
        prompt = (
            f"Market query: {query}\n\n"
            f"Companies considered:\n{company_list or '- None'}\n\n"
            "Write a concise paragraph (3-4 sentences) describing the top market opportunities for this niche, "
            "referencing the nature of these companies. Focus on trends, buyer pain points, and acquisition "
            "opportunities."
        )
        text = await self.llm.generate(
            prompt,
            system_prompt=SYSTEM_PROMPT,
            temperature=0.4,
            max_tokens=INSIGHTS_MAX_TOKENS,
        )
        return text.strip() or FALLBACK_INSIGHT
