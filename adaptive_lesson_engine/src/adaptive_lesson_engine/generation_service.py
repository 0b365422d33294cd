"""
Generation Service

Text generation backed by OpenAI chat completions.

Every call is bounded by a timeout and any failure surfaces as
GenerationError, so callers only need to handle one error type.
Identical prompts are served from a ResponseCache.
"""

import asyncio
import logging
from typing import Optional

from openai import AsyncOpenAI

from adaptive_lesson_engine.config import EngineSettings
from adaptive_lesson_engine.errors import GenerationError
from adaptive_lesson_engine.response_cache import ResponseCache

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an adaptive lesson designer and tutor. "
    "When asked for JSON, return only valid JSON."
)


class OpenAIGenerationService:
    """
    GenerationService implementation using AsyncOpenAI.

    Args:
        settings: Engine settings (model, timeout, cache sizing)
        llm_client: Optional pre-built client
        cache: Optional response cache; one is created from settings if omitted
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        llm_client: Optional[AsyncOpenAI] = None,
        cache: Optional[ResponseCache] = None
    ):
        self.settings = settings or EngineSettings.from_env()
        if llm_client is None:
            if not self.settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            llm_client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        self.llm_client = llm_client
        self.model = self.settings.openai_model
        self.cache = cache if cache is not None else ResponseCache(
            max_size=self.settings.response_cache_max_size,
            ttl_seconds=self.settings.response_cache_ttl_seconds,
        )

    async def generate(self, prompt: str) -> str:
        """
        Generate a completion for the prompt.

        Args:
            prompt: Prompt text

        Returns:
            The model's text response

        Raises:
            GenerationError: On timeout, API failure or an empty response
        """
        cached = self.cache.get(prompt, namespace=self.model)
        if cached is not None:
            logger.debug("💾 [Generation] Cache hit")
            return cached

        try:
            response = await asyncio.wait_for(
                self.llm_client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt}
                    ],
                    temperature=self.settings.generation_temperature,
                    max_tokens=self.settings.generation_max_tokens
                ),
                timeout=self.settings.generation_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"⏱️ [Generation] Timed out after {self.settings.generation_timeout_seconds}s")
            raise GenerationError("Generation timed out", cause=e) from e
        except Exception as e:
            logger.warning(f"⚠️ [Generation] Model call failed: {e}")
            raise GenerationError(f"AI generation failed: {e}", cause=e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("AI generation returned an empty response")

        self.cache.put(prompt, content, namespace=self.model)
        return content
