"""
Exam phases and the coverage each phase expects per skill.
"""

from typing import Dict

from exam_mastery.exceptions import InputError
from exam_mastery.schemas.planner import ExamPhase

CRITICAL_MAX_DAYS = 7
DISTANT_MIN_DAYS = 60

# Minimum attempts per skill expected within each phase
COVERAGE_BY_PHASE: Dict[ExamPhase, Dict[str, int]] = {
    ExamPhase.DISTANT: {"practice": 2, "timed": 0, "mocks": 0},
    ExamPhase.APPROACHING: {"practice": 2, "timed": 1, "mocks": 0},
    ExamPhase.CRITICAL: {"practice": 0, "timed": 4, "mocks": 1},
}


def determine_exam_phase(days_until_written: int) -> ExamPhase:
    """
    Bucket the days until the written exam.

    >= 60 -> distant, 8..59 -> approaching, <= 7 -> critical (including
    negative values, i.e. exam day passed but plans still requested).
    """
    if isinstance(days_until_written, bool) or not isinstance(days_until_written, int):
        raise InputError(
            f"days_until_written must be an integer, got {days_until_written!r}",
            field="days_until_written",
        )
    if days_until_written <= CRITICAL_MAX_DAYS:
        return ExamPhase.CRITICAL
    if days_until_written < DISTANT_MIN_DAYS:
        return ExamPhase.APPROACHING
    return ExamPhase.DISTANT


def coverage_requirements(phase: ExamPhase) -> Dict[str, int]:
    return dict(COVERAGE_BY_PHASE[ExamPhase(phase)])
