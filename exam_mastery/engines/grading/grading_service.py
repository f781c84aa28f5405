"""
Grading Service - bounded retry around the generation collaborator.

Each try: render prompt -> generate (with timeout) -> extract -> validate.
Any failure is logged and retried with a stricter prompt after a linearly
growing delay. When every try fails the caller gets the flagged fallback
result; generation errors never escape.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from exam_mastery.ai.generation import GenerationClient
from exam_mastery.config import Settings, get_settings
from exam_mastery.engines.grading.output_validator import (
    GradingOutputValidator,
    build_fallback_output,
)
from exam_mastery.engines.grading.prompt_builder import build_grading_prompt, with_retry_instruction
from exam_mastery.engines.grading.rubrics import rubric_for
from exam_mastery.exceptions import GenerationError, InputError
from exam_mastery.logging_config import get_logger
from exam_mastery.schemas.grading import GradingOutput, GradingRequest
from exam_mastery.schemas.mastery import ItemFormat

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class GradingService:
    """Grades written, oral and drafting responses."""

    def __init__(
        self,
        client: Optional[GenerationClient],
        settings: Optional[Settings] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return max(1, self.settings.grading_max_attempts)

    def retry_delay(self, attempt: int) -> float:
        """Delay before the try following `attempt` (1-based)."""
        return attempt * self.settings.grading_retry_delay_seconds

    async def _generate(self, prompt: str) -> str:
        timeout = self.settings.generation_timeout_seconds
        if timeout and timeout > 0:
            return await asyncio.wait_for(self.client.generate(prompt), timeout=timeout)
        return await self.client.generate(prompt)

    async def grade(self, request: GradingRequest) -> GradingOutput:
        """
        Grade one response.

        Raises:
            InputError: for MCQ items, which are graded by grade_mcq
        """
        fmt = ItemFormat(request.format)
        if fmt == ItemFormat.MCQ:
            raise InputError("MCQ items are graded deterministically with grade_mcq", field="format")

        rubric = request.rubric or rubric_for(fmt)
        log_extra = {"item_id": request.item_id, "user_id": request.user_id, "format": fmt.value}

        if self.client is None:
            logger.warning(
                "No generation client; returning fallback grading",
                extra={**log_extra, "fallback": True},
            )
            return build_fallback_output(fmt, rubric, reason="no generation client configured")

        base_prompt = build_grading_prompt(request)
        prompt = base_prompt
        failures: List[str] = []

        for attempt in range(1, self.max_attempts + 1):
            try:
                raw_text = await self._generate(prompt)
                output = GradingOutputValidator.parse(raw_text)
            except asyncio.TimeoutError:
                failures.append(f"attempt {attempt}: generation timed out")
                logger.warning("Grading attempt %d timed out", attempt, extra=log_extra)
            except GenerationError as exc:
                failures.append(f"attempt {attempt}: {exc}")
                logger.warning("Grading attempt %d rejected: %s", attempt, exc, extra=log_extra)
            except Exception as exc:
                # Collaborator transport failures are retried like bad output
                failures.append(f"attempt {attempt}: {type(exc).__name__}: {exc}")
                logger.warning(
                    "Grading attempt %d failed: %s", attempt, exc, extra=log_extra, exc_info=True
                )
            else:
                logger.info(
                    "Graded %s in %d attempt(s): score_norm=%.3f",
                    request.item_id,
                    attempt,
                    output.score_norm,
                    extra=log_extra,
                )
                return output.model_copy(update={"generation_attempts": attempt})

            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay(attempt))
                prompt = with_retry_instruction(base_prompt)

        logger.warning(
            "Grading failed after %d attempts; returning fallback",
            self.max_attempts,
            extra={**log_extra, "fallback": True},
        )
        return build_fallback_output(
            fmt,
            rubric,
            reason="; ".join(failures),
            attempts=self.max_attempts,
        )
