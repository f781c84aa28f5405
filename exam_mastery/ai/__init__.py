"""Generation collaborator clients."""

from exam_mastery.ai.generation import (
    GenerationClient,
    OpenAIGenerationClient,
    get_generation_client,
)

__all__ = ["GenerationClient", "OpenAIGenerationClient", "get_generation_client"]
