"""
LiteLLM implementation of the content generator.

Supports Bedrock, OpenAI, and other providers via LiteLLM, including custom
endpoints (api_base) for proxy servers.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

import litellm
from pydantic import ValidationError as PydanticValidationError

from plancal.core.config import get_settings
from plancal.core.exceptions import ContentGenerationError
from plancal.core.logger import setup_logger
from plancal.interfaces.content_generator import IContentGenerator
from plancal.models.regeneration import GeneratedPlanContent

logger = setup_logger(__name__)

SYSTEM_INSTRUCTION = (
    "You turn a personal goal into a concrete day-by-day plan. "
    "Tasks must be specific, each between 5 and 360 minutes long, "
    "with priority 1 (critical) to 4 (nice to have)."
)

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "goal_title": {"type": "string"},
        "plan_summary": {"type": "string"},
        "timeline_days": {"type": "integer"},
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "details": {"type": "string"},
                    "duration_minutes": {"type": "integer"},
                    "priority": {"type": "integer"},
                    "is_recurring": {"type": "boolean"},
                    "is_indefinite": {"type": "boolean"},
                },
                "required": ["name", "duration_minutes", "priority"],
            },
        },
    },
    "required": ["goal_title", "plan_summary", "timeline_days", "tasks"],
}


def _extract_json(raw_output: str) -> dict:
    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", raw_output)
    if json_match:
        json_str = json_match.group(1).strip()
    else:
        json_match = re.search(r"\{[\s\S]*\}", raw_output)
        if not json_match:
            raise ContentGenerationError("No JSON found in generator output")
        json_str = json_match.group(0)
    return json.loads(json_str)


def build_prompt(
    goal_text: str,
    clarifications: Optional[Any] = None,
    timeline_days: Optional[int] = None,
) -> str:
    lines = [f"Goal: {goal_text.strip()}"]
    if clarifications:
        lines.append(f"Clarifications: {json.dumps(clarifications, ensure_ascii=False)}")
    if timeline_days:
        lines.append(f"Timeline: {timeline_days} days")
    schema_text = json.dumps(RESPONSE_SCHEMA, ensure_ascii=False)
    lines.append(f"\nReturn JSON only. Schema:\n{schema_text}")
    return "\n".join(lines)


class LiteLLMContentGenerator(IContentGenerator):
    """Content generator calling a chat model through LiteLLM."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.4,
        max_output_tokens: int = 4000,
    ):
        """
        Initialize generator.

        Args:
            model_name: LiteLLM model identifier (e.g., "openai/gpt-4o-mini")
            api_base: Custom API endpoint URL (optional, for proxy servers)
            api_key: Custom API key (optional, overrides default)
        """
        self._settings = get_settings()
        self._model_name = model_name or self._settings.LITELLM_MODEL
        self._api_base = api_base or self._settings.LITELLM_API_BASE or None
        self._api_key = api_key or self._settings.LITELLM_API_KEY or None
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    async def generate(
        self,
        goal_text: str,
        clarifications: Optional[Any] = None,
        timeline_days: Optional[int] = None,
    ) -> GeneratedPlanContent:
        kwargs: dict = {
            "model": self._model_name,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": build_prompt(goal_text, clarifications, timeline_days)},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_output_tokens,
            "timeout": self._settings.CONTENT_GENERATION_TIMEOUT_SECONDS,
        }
        if self._api_base:
            kwargs["api_base"] = self._api_base
        if self._api_key:
            kwargs["api_key"] = self._api_key

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as exc:
            logger.warning(f"LiteLLM request failed: {exc}")
            raise ContentGenerationError("Content generation request failed") from exc

        content = response.choices[0].message.content if response.choices else ""
        text = (content or "").strip()
        if not text:
            raise ContentGenerationError("Content generator returned an empty response")

        try:
            return GeneratedPlanContent.model_validate(_extract_json(text))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            logger.warning(f"Unparseable generator output: {exc}")
            raise ContentGenerationError(
                "Content generator returned malformed JSON",
                details={"raw_output": text[:2000]},
            ) from exc
