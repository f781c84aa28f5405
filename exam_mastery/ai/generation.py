"""
Generation collaborator - the text-generation service used for grading.

The grading service only depends on the GenerationClient protocol; the
OpenAI-backed client is constructed when an API key is configured.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from exam_mastery.config import Settings, get_settings
from exam_mastery.exceptions import GenerationError

logger = logging.getLogger(__name__)

GRADER_SYSTEM_PROMPT = (
    "You are a strict exam grader. Output only a single JSON object matching "
    "the requested schema."
)


@runtime_checkable
class GenerationClient(Protocol):
    """Anything that turns a prompt into raw text."""

    async def generate(self, prompt: str) -> str:
        ...


def _usable_key(settings: Settings) -> Optional[str]:
    key = (settings.openai_api_key or "").strip()
    is_placeholder = not key or key.startswith("sk-your-")
    return None if is_placeholder else key


class OpenAIGenerationClient:
    """Chat-completions backed generation client."""

    def __init__(self, api_key: str, model: str = "gpt-4o", temperature: float = 0.2):
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

    async def generate(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": GRADER_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
        )
        if not response.choices:
            raise GenerationError("Generation returned no choices")
        return (response.choices[0].message.content or "").strip()


def get_generation_client(settings: Optional[Settings] = None) -> Optional[GenerationClient]:
    """OpenAI client when a real key is configured, else None."""
    settings = settings or get_settings()
    key = _usable_key(settings)
    if key is None:
        logger.warning("No OpenAI API key configured; grading will return fallback results")
        return None
    return OpenAIGenerationClient(
        api_key=key,
        model=settings.grading_model,
        temperature=settings.generation_temperature,
    )
