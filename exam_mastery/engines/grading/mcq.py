"""
MCQ Grader - deterministic grading for multiple-choice items.

No generation call is made: the selected label is compared to the correct
label, case-insensitively and ignoring surrounding whitespace.
"""

from typing import List, Optional

from exam_mastery.engines.grading.rubrics import WRONG_ANSWER_TAG
from exam_mastery.exceptions import InputError
from exam_mastery.schemas.grading import GradingOutput, McqOption, RubricLine


def _normalize(label: Optional[str]) -> str:
    return (label or "").strip().casefold()


class McqGrader:
    """Grades a selected option against the answer key."""

    @classmethod
    def correct_option(cls, options: List[McqOption], correct_label: Optional[str] = None) -> McqOption:
        """
        Resolve the correct option, by label when given, else by is_correct flag.

        Raises:
            InputError: no option matches
        """
        if correct_label is not None:
            wanted = _normalize(correct_label)
            for option in options:
                if _normalize(option.label) == wanted:
                    return option
            raise InputError(f"Correct option {correct_label!r} is not among the options", field="correct_option")
        flagged = [o for o in options if o.is_correct]
        if len(flagged) != 1:
            raise InputError(
                f"Expected exactly one option flagged correct, found {len(flagged)}",
                field="options",
            )
        return flagged[0]

    @classmethod
    def grade(
        cls,
        selected_label: str,
        options: List[McqOption],
        correct_label: Optional[str] = None,
    ) -> GradingOutput:
        correct = cls.correct_option(options, correct_label)
        is_correct = _normalize(selected_label) == _normalize(correct.label)
        score = 1.0 if is_correct else 0.0

        if is_correct:
            feedback = "Correct answer selected."
            missing: List[str] = []
            tags: List[str] = []
        else:
            feedback = f"Incorrect. The correct answer is {correct.label}: {correct.text}"
            missing = [correct.text]
            tags = [WRONG_ANSWER_TAG]

        return GradingOutput(
            score_norm=score,
            score_raw=score,
            max_score=1.0,
            rubric_breakdown=[
                RubricLine(
                    category="mcq_accuracy",
                    score=score,
                    max_score=1.0,
                    feedback=feedback,
                    missing_points=missing,
                )
            ],
            missing_points=missing,
            error_tags=tags,
            next_drills=[],
            model_outline=correct.text,
            evidence_requests=[],
        )


def grade_mcq(
    selected_label: str,
    options: List[McqOption],
    correct_label: Optional[str] = None,
) -> GradingOutput:
    """Grade an MCQ selection. Score is 1.0 or 0.0."""
    return McqGrader.grade(selected_label, options, correct_label)
