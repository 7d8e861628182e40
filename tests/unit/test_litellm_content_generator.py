"""
Unit tests for the LiteLLM content generator.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from plancal.core.exceptions import ContentGenerationError
from plancal.infrastructure.local.litellm_content_generator import (
    LiteLLMContentGenerator,
    build_prompt,
)


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


FENCED_OUTPUT = """Here is your plan:
```json
{"goal_title": "Learn Go", "plan_summary": "Basics first", "timeline_days": 10,
 "tasks": [{"name": "Tour of Go", "duration_minutes": 90, "priority": 1}]}
```"""


@pytest.mark.asyncio
async def test_parses_fenced_json():
    generator = LiteLLMContentGenerator(model_name="openai/test-model", api_key="sk-test")
    with patch(
        "plancal.infrastructure.local.litellm_content_generator.litellm.acompletion",
        new=AsyncMock(return_value=_response(FENCED_OUTPUT)),
    ) as completion:
        content = await generator.generate("Learn Go", {"level": "new"}, 10)

    assert content.goal_title == "Learn Go"
    assert content.timeline_days == 10
    assert content.tasks[0].name == "Tour of Go"
    kwargs = completion.call_args.kwargs
    assert kwargs["model"] == "openai/test-model"
    assert kwargs["api_key"] == "sk-test"
    assert "Learn Go" in kwargs["messages"][1]["content"]


@pytest.mark.asyncio
async def test_parses_bare_json():
    generator = LiteLLMContentGenerator(model_name="openai/test-model")
    raw = '{"goal_title": "X", "plan_summary": "", "timeline_days": 3, "tasks": []}'
    with patch(
        "plancal.infrastructure.local.litellm_content_generator.litellm.acompletion",
        new=AsyncMock(return_value=_response(raw)),
    ):
        content = await generator.generate("X")
    assert content.tasks == []


@pytest.mark.asyncio
async def test_request_failure_wrapped():
    generator = LiteLLMContentGenerator(model_name="openai/test-model")
    with patch(
        "plancal.infrastructure.local.litellm_content_generator.litellm.acompletion",
        new=AsyncMock(side_effect=RuntimeError("rate limited")),
    ):
        with pytest.raises(ContentGenerationError):
            await generator.generate("X")


@pytest.mark.asyncio
async def test_malformed_output_rejected():
    generator = LiteLLMContentGenerator(model_name="openai/test-model")
    with patch(
        "plancal.infrastructure.local.litellm_content_generator.litellm.acompletion",
        new=AsyncMock(return_value=_response("```json\n{not json}\n```")),
    ):
        with pytest.raises(ContentGenerationError) as exc_info:
            await generator.generate("X")
    assert exc_info.value.code == "CONTENT_GENERATION_FAILED"


@pytest.mark.asyncio
async def test_empty_output_rejected():
    generator = LiteLLMContentGenerator(model_name="openai/test-model")
    with patch(
        "plancal.infrastructure.local.litellm_content_generator.litellm.acompletion",
        new=AsyncMock(return_value=_response("")),
    ):
        with pytest.raises(ContentGenerationError):
            await generator.generate("X")


def test_prompt_includes_clarifications_and_timeline():
    prompt = build_prompt("Learn Go", {"hours": 5}, 21)
    assert "Goal: Learn Go" in prompt
    assert '"hours": 5' in prompt
    assert "Timeline: 21 days" in prompt
