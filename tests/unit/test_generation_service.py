"""
Unit Tests for OpenAI Generation Service

Uses a stand-in chat completions client; no network access.
"""

import asyncio
import pytest
import sys
import os
from types import SimpleNamespace

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_lesson_engine", "src"))

from adaptive_lesson_engine.config import EngineSettings
from adaptive_lesson_engine.errors import GenerationError
from adaptive_lesson_engine.generation_service import OpenAIGenerationService


class FakeCompletions:
    def __init__(self, content="ok", error=None, delay=0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_service(completions, **settings_overrides):
    settings = EngineSettings(openai_model="test-model", **settings_overrides)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIGenerationService(settings=settings, llm_client=client)


class TestOpenAIGenerationService:
    """Test suite for OpenAIGenerationService."""

    @pytest.mark.asyncio
    async def test_generate_returns_content(self):
        completions = FakeCompletions(content='{"a": 1}')
        service = make_service(completions)

        assert await service.generate("prompt") == '{"a": 1}'
        call = completions.calls[0]
        assert call["model"] == "test-model"
        assert call["messages"][-1] == {"role": "user", "content": "prompt"}

    @pytest.mark.asyncio
    async def test_identical_prompts_cached(self):
        completions = FakeCompletions(content="cached answer")
        service = make_service(completions)

        await service.generate("same prompt")
        assert await service.generate("same prompt") == "cached answer"
        assert len(completions.calls) == 1

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        service = make_service(FakeCompletions(error=RuntimeError("rate limited")))

        with pytest.raises(GenerationError) as exc_info:
            await service.generate("prompt")
        assert "rate limited" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self):
        service = make_service(FakeCompletions(delay=1.0), generation_timeout_seconds=0.05)

        with pytest.raises(GenerationError):
            await service.generate("prompt")

    @pytest.mark.asyncio
    async def test_empty_response_rejected(self):
        service = make_service(FakeCompletions(content="   "))

        with pytest.raises(GenerationError):
            await service.generate("prompt")

    def test_api_key_required_without_client(self):
        with pytest.raises(ValueError):
            OpenAIGenerationService(settings=EngineSettings(openai_api_key=""))
