"""
Insight Extraction Agent.
Turns scraped website text into a structured InsightPayload via the LLM.

One correction round-trip is attempted when the first response is not valid
JSON; a second failure raises ExtractionError.
"""
import json
import logging
from typing import Optional

from pydantic import ValidationError

from src.core.ai_client import LLMClient, parse_json_lenient
from src.search.schemas import ALLOWED_INDUSTRIES, InsightPayload

logger = logging.getLogger(__name__)

EXTRACTION_MAX_TOKENS = 4096

SYSTEM_PROMPT = """You are an AI analyst specialized in SaaS company intelligence.
Given scraped website content, produce a JSON object describing the company using the required schema.

Rules:
- Respond with JSON only, no prose.
- Provide thoughtful, evidence-based insights.
- The "summary" field must be a concise 2-4 sentence executive summary written for M&A analysts.
- If data is missing, infer cautiously or use "Unknown".
- acquisition_fit_score must be a number between 0 and 10."""

CORRECTION_SYSTEM_PROMPT = "You fix JSON outputs. Respond with corrected JSON only."

SCHEMA_HINT = """{
  "name": "string",
  "website": "https://example.com",
  "summary": "2-4 sentence executive summary for M&A analysts",
  "product_offering": "string",
  "customer_segment": "string",
  "tech_stack": ["string"],
  "estimated_headcount": "string",
  "hq_location": "string",
  "pricing_model": "string",
  "strengths": ["string"],
  "risks": ["string"],
  "opportunities": ["string"],
  "acquisition_fit_score": 0-10 number,
  "acquisition_fit_reason": "string",
  "top_competitors": ["string"],
  "primary_industry": "one of the allowed industries",
  "secondary_industry": "one of the allowed industries or null"
}"""


class ExtractionError(Exception):
    """The extraction oracle returned output that could not be parsed or validated."""


class InsightExtractionAgent:
    """Extraction oracle backed by the shared LLM client."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient.from_settings()

    def _build_prompt(self, company_name: str, website: str, content: str) -> str:
        return (
            f"Company: {company_name}\n"
            f"Website: {website}\n\n"
            f'Scraped content:\n"""{content}"""\n\n'
            f"Allowed industries: {', '.join(ALLOWED_INDUSTRIES)}\n\n"
            f"Output JSON matching exactly this schema:\n{SCHEMA_HINT}"
        )

    async def _request_correction(self, invalid_json: str, error_message: str) -> str:
        prompt = (
            "The previous JSON output could not be parsed.\n"
            f"Parsing error: {error_message}\n\n"
            f'Original JSON:\n"""{invalid_json}"""\n\n'
            "Please respond with corrected JSON only, no comments or explanations."
        )
        return await self.llm.generate(
            prompt,
            system_prompt=CORRECTION_SYSTEM_PROMPT,
            temperature=0,
            max_tokens=EXTRACTION_MAX_TOKENS,
        )

    async def extract(self, company_name: str, website: str, combined_text: str) -> InsightPayload:
        raw = await self.llm.generate(
            self._build_prompt(company_name, website, combined_text),
            system_prompt=SYSTEM_PROMPT,
            temperature=0.1,
            max_tokens=EXTRACTION_MAX_TOKENS,
        )

        try:
            parsed = parse_json_lenient(raw)
            if not isinstance(parsed, dict):
                raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
        except ValueError as first_error:
            logger.warning(f"Extraction JSON for {company_name} invalid ({first_error}), requesting correction")
            corrected = await self._request_correction(raw, str(first_error))
            try:
                parsed = json.loads(corrected.replace("```json", "").replace("```", "").strip())
            except json.JSONDecodeError as second_error:
                raise ExtractionError(
                    f"Failed to parse extraction response after retry: {second_error}"
                ) from second_error
            if not isinstance(parsed, dict):
                raise ExtractionError("Extraction response is not a JSON object")

        parsed.setdefault("name", company_name)
        parsed.setdefault("website", website)

        try:
            payload = InsightPayload.model_validate(parsed)
        except ValidationError as e:
            raise ExtractionError(f"Extraction response failed validation: {e}") from e

        logger.info(
            f"Extracted insights for {company_name}: fit={payload.acquisition_fit_score} "
            f"industry={payload.primary_industry}"
        )
        return payload
