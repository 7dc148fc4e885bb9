"""
Tests for the LLM-backed oracles and the shared LLM client.
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.ai_client import LLMClient, parse_json_lenient
from src.search.agents import (
    FALLBACK_INSIGHT,
    AggregateInsightAgent,
    CompanyDiscoveryAgent,
    ExtractionError,
    InsightExtractionAgent,
)


def _llm(*responses):
    """LLMClient stand-in whose generate() returns the given responses in order."""
    llm = MagicMock(spec=LLMClient)
    llm.generate = AsyncMock(side_effect=list(responses))
    return llm


EXTRACTION_JSON = {
    "name": "Acme Dental",
    "website": "https://acmedental.com",
    "summary": "Practice management software for dental clinics.",
    "tech_stack": "React, Node.js",
    "strengths": ["Sticky workflow"],
    "acquisition_fit_score": 14,
    "primary_industry": "healthcare",
    "secondary_industry": "Quantum Widgets",
}


class TestParseJsonLenient:

    def test_fenced_json(self):
        assert parse_json_lenient('```json\n{"a": 1}\n```') == {"a": 1}

    def test_prose_around_payload(self):
        assert parse_json_lenient('Here you go: [{"name": "Acme"}] Hope that helps!') == [{"name": "Acme"}]

    def test_trailing_commas(self):
        assert parse_json_lenient('{"a": [1, 2,],}') == {"a": [1, 2]}

    def test_nothing_recoverable(self):
        with pytest.raises(ValueError):
            parse_json_lenient("   ")


@pytest.mark.asyncio
class TestLLMClient:

    async def test_anthropic_text_blocks_joined(self):
        anthropic = MagicMock()
        anthropic.messages.create = AsyncMock(return_value=SimpleNamespace(content=[
            SimpleNamespace(type="text", text="Hello"),
            SimpleNamespace(type="tool_use", text=None),
            SimpleNamespace(type="text", text="world"),
        ]))
        client = LLMClient(anthropic_client=anthropic, anthropic_model="test-model")

        assert await client.generate("hi", temperature=0.1) == "Hello\nworld"
        kwargs = anthropic.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0.1

    async def test_openai_fallback(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  answer  "))]
        ))
        client = LLMClient(openai_client=openai, openai_model="gpt-test")

        assert await client.generate("hi") == "answer"
        assert openai.chat.completions.create.call_args.kwargs["model"] == "gpt-test"

    async def test_no_provider(self):
        client = LLMClient()
        assert client.available is False
        with pytest.raises(RuntimeError, match="No LLM provider"):
            await client.generate("hi")

    async def test_empty_response(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        ))
        with pytest.raises(RuntimeError, match="empty response"):
            await LLMClient(openai_client=openai).generate("hi")


@pytest.mark.asyncio
class TestCompanyDiscoveryAgent:

    async def test_maps_reason_to_description(self):
        llm = _llm(json.dumps([
            {"name": "Acme Dental", "website": "https://acmedental.com", "reason": "Dental PMS",
             "industry": "Healthcare", "country": "US"},
            {"name": "  ", "website": "https://nameless.com"},
            "not an object",
            {"name": "Molar Cloud", "website": None, "reason": "Imaging"},
        ]))
        agent = CompanyDiscoveryAgent(llm, max_companies=15)

        candidates = await agent.discover("dental software", temperature=0.8)

        assert [c.name for c in candidates] == ["Acme Dental", "Molar Cloud"]
        assert candidates[0].description == "Dental PMS"
        assert candidates[0].country == "US"
        assert candidates[1].website is None
        assert llm.generate.call_args.kwargs["temperature"] == 0.8

    async def test_caps_at_max_companies(self):
        llm = _llm(json.dumps([{"name": f"Co {i}", "website": f"co{i}.com"} for i in range(30)]))
        candidates = await CompanyDiscoveryAgent(llm, max_companies=12).discover("crm")
        assert len(candidates) == 12

    async def test_wrapped_array(self):
        llm = _llm('```json\n{"companies": [{"name": "Acme", "website": "acme.com"}]}\n```')
        candidates = await CompanyDiscoveryAgent(llm, max_companies=5).discover("crm")
        assert [c.name for c in candidates] == ["Acme"]

    async def test_unparseable_raises(self):
        llm = _llm("   ")
        with pytest.raises(ValueError):
            await CompanyDiscoveryAgent(llm, max_companies=5).discover("crm")


@pytest.mark.asyncio
class TestInsightExtractionAgent:

    async def test_valid_response_is_coerced(self):
        llm = _llm(json.dumps(EXTRACTION_JSON))
        payload = await InsightExtractionAgent(llm).extract("Acme Dental", "https://acmedental.com", "[HOME]\nAcme")

        assert payload.tech_stack == ["React", "Node.js"]
        assert payload.acquisition_fit_score == 10
        assert payload.primary_industry == "Healthcare"
        assert payload.secondary_industry is None
        assert payload.product_offering == "N/A"
        assert llm.generate.call_count == 1
        assert llm.generate.call_args.kwargs["temperature"] == 0.1

    async def test_identity_defaults_to_inputs(self):
        llm = _llm('{"summary": "Short."}')
        payload = await InsightExtractionAgent(llm).extract("Acme Dental", "https://acmedental.com", "text")
        assert payload.name == "Acme Dental"
        assert payload.website == "https://acmedental.com"
        assert payload.primary_industry == "Vertical SaaS"

    async def test_correction_retry(self):
        llm = _llm("   ", json.dumps(EXTRACTION_JSON))
        payload = await InsightExtractionAgent(llm).extract("Acme Dental", "https://acmedental.com", "text")

        assert payload.summary == EXTRACTION_JSON["summary"]
        assert llm.generate.call_count == 2
        assert llm.generate.call_args_list[1].kwargs["temperature"] == 0

    async def test_second_failure_raises(self):
        llm = _llm("   ", "still not json")
        with pytest.raises(ExtractionError, match="after retry"):
            await InsightExtractionAgent(llm).extract("Acme Dental", "https://acmedental.com", "text")

    async def test_invalid_score_raises(self):
        llm = _llm('{"acquisition_fit_score": "very high"}')
        with pytest.raises(ExtractionError, match="validation"):
            await InsightExtractionAgent(llm).extract("Acme Dental", "https://acmedental.com", "text")


@pytest.mark.asyncio
class TestAggregateInsightAgent:

    async def test_prompt_lists_companies(self):
        llm = _llm("Clinics are consolidating.")
        text = await AggregateInsightAgent(llm).aggregate_insight(
            "dental software", [("Acme Dental", "Dental PMS"), ("Molar Cloud", "Imaging")]
        )

        assert text == "Clinics are consolidating."
        prompt = llm.generate.call_args.args[0]
        assert "- Acme Dental: Dental PMS" in prompt
        assert "- Molar Cloud: Imaging" in prompt
        assert llm.generate.call_args.kwargs["temperature"] == 0.4

    async def test_blank_response_falls_back(self):
        llm = _llm("   ")
        text = await AggregateInsightAgent(llm).aggregate_insight("dental software", [])
        assert text == FALLBACK_INSIGHT
