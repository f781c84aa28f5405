"""
Grading Engine - prompt assembly, strict output validation, MCQ grading.

Generated grading text is never trusted: it is extracted, validated field by
field, retried up to a bound, and replaced by a flagged fallback on failure.
"""

from exam_mastery.engines.grading.grading_service import GradingService
from exam_mastery.engines.grading.mcq import McqGrader, grade_mcq
from exam_mastery.engines.grading.output_validator import (
    GradingOutputValidator,
    build_fallback_output,
    validate_grading_output,
)
from exam_mastery.engines.grading.prompt_builder import build_grading_prompt, with_retry_instruction
from exam_mastery.engines.grading.rubrics import error_codes_for, rubric_for

__all__ = [
    "GradingService",
    "McqGrader",
    "grade_mcq",
    "GradingOutputValidator",
    "build_fallback_output",
    "validate_grading_output",
    "build_grading_prompt",
    "with_retry_instruction",
    "error_codes_for",
    "rubric_for",
]
