"""
Daily Planner - explainable daily task lists for exam candidates.

Candidates are scored on learning gain, retention risk, exam ROI, error
closure and burnout, then admitted greedily within the time budget.
"""

from exam_mastery.engines.planner.daily_planner import (
    DailyPlanGenerator,
    generate_daily_plan,
    input_fingerprint,
)
from exam_mastery.engines.planner.exam_phase import (
    COVERAGE_BY_PHASE,
    coverage_requirements,
    determine_exam_phase,
)
from exam_mastery.engines.planner.scoring import PLANNER_WEIGHTS, score_task

__all__ = [
    "DailyPlanGenerator",
    "generate_daily_plan",
    "input_fingerprint",
    "COVERAGE_BY_PHASE",
    "coverage_requirements",
    "determine_exam_phase",
    "PLANNER_WEIGHTS",
    "score_task",
]
