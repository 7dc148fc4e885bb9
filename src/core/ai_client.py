"""
LLM client shared by the discovery, extraction and insight oracles.

Prefers Anthropic (AsyncAnthropic) when ANTHROPIC_API_KEY is set, otherwise any
OpenAI-compatible endpoint (AsyncOpenAI with OPENAI_API_BASE).
"""
import json
import logging
import re
from typing import Any, Optional

from anthropic import AsyncAnthropic
from json_repair import repair_json
from openai import AsyncOpenAI

from src.core.config import settings
from src.core.utils import strip_code_fences

logger = logging.getLogger(__name__)


class LLMClient:
    def __init__(
        self,
        anthropic_client: Optional[AsyncAnthropic] = None,
        openai_client: Optional[AsyncOpenAI] = None,
        anthropic_model: Optional[str] = None,
        openai_model: Optional[str] = None,
    ):
        self.anthropic_client = anthropic_client
        self.openai_client = openai_client
        self.anthropic_model = anthropic_model or settings.anthropic_model
        self.openai_model = openai_model or settings.llm_model

        if not self.available:
            logger.warning("No LLM API key set (ANTHROPIC_API_KEY / OPENAI_API_KEY). AI features will fail.")

    @classmethod
    def from_settings(cls) -> "LLMClient":
        anthropic_client = None
        openai_client = None
        if settings.anthropic_api_key:
            anthropic_client = AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_request_timeout,
            )
        elif settings.openai_api_key:
            openai_client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_api_base,
                timeout=settings.llm_request_timeout,
            )
        return cls(anthropic_client=anthropic_client, openai_client=openai_client)

    @property
    def available(self) -> bool:
        return self.anthropic_client is not None or self.openai_client is not None

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "You are a helpful assistant.",
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """
        Generate text from the configured provider.
        Raises RuntimeError when no provider is configured or the response is empty.
        """
        if self.anthropic_client is not None:
            response = await self.anthropic_client.messages.create(
                model=self.anthropic_model,
                max_tokens=max_tokens,
                system=system_prompt,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
            content = "\n".join(
                block.text for block in response.content
                if getattr(block, "type", None) == "text" and block.text
            )
        elif self.openai_client is not None:
            response = await self.openai_client.chat.completions.create(
                model=self.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            content = response.choices[0].message.content or ""
        else:
            raise RuntimeError("No LLM provider configured")

        content = content.strip()
        if not content:
            raise RuntimeError("LLM returned an empty response")
        return content


def parse_json_lenient(raw: str) -> Any:
    """
    Parse JSON with tolerance for common LLM output errors:
    markdown fences, prose around the payload, trailing commas.
    Raises ValueError when nothing usable can be recovered.
    """
    text = strip_code_fences(raw)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Prose around the payload: cut to the outermost bracket pair
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if starts:
        start = min(starts)
        end = max(text.rfind("}"), text.rfind("]"))
        if end > start:
            fragment = text[start:end + 1]
            try:
                return json.loads(fragment)
            except json.JSONDecodeError:
                text = fragment

    cleaned = re.sub(r",\s*([\]\}])", r"\1", text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    repaired = repair_json(cleaned, return_objects=True)
    if repaired in ("", None, [], {}) and cleaned.strip() not in ("[]", "{}"):
        logger.error(f"Could not parse JSON from LLM response (length {len(raw)}): {raw[:300]}")
        raise ValueError(f"Could not parse JSON from LLM response (length {len(raw)})")
    return repaired
