"""
Planner objective function.

    total = 0.35 * learning_gain
          + 0.20 * retention_gain
          + 0.25 * exam_roi
          + 0.15 * error_closure
          - 0.05 * burnout_penalty
"""

import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from exam_mastery.schemas.mastery import ItemFormat, MasteryRecord, Skill, as_utc
from exam_mastery.schemas.planner import ErrorSignature, RecentActivity, TaskScore

PLANNER_WEIGHTS: Dict[str, float] = {
    "learning_gain": 0.35,
    "retention_gain": 0.20,
    "exam_roi": 0.25,
    "error_closure": 0.15,
    "burnout_penalty": 0.05,
}

FORMAT_QUALITY_BOOST: Dict[ItemFormat, float] = {
    ItemFormat.ORAL: 1.35,
    ItemFormat.DRAFTING: 1.25,
    ItemFormat.WRITTEN: 1.15,
}

CORE_SKILL_BOOST = 1.3
BURNOUT_WINDOW = timedelta(hours=24)

_SECONDS_PER_DAY = 86400.0


def _days_between(later: datetime, earlier: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / _SECONDS_PER_DAY


def learning_gain(p_mastery: float, fmt: Optional[ItemFormat], difficulty: int, exam_weight: float) -> float:
    """Bigger for low mastery, richer formats and harder items."""
    format_boost = FORMAT_QUALITY_BOOST.get(fmt, 1.0) if fmt is not None else 1.0
    if difficulty >= 4:
        difficulty_boost = 1.2
    elif difficulty >= 3:
        difficulty_boost = 1.0
    else:
        difficulty_boost = 0.8
    return (1.0 - p_mastery) * format_boost * difficulty_boost * exam_weight


def retention_gain(
    last_practiced_at: Optional[datetime],
    next_review_date: Optional[datetime],
    stability: float,
    as_of: datetime,
) -> float:
    """Spaced-repetition urgency in [0, 1]."""
    if last_practiced_at is None:
        return 1.0
    if next_review_date is not None:
        days_overdue = _days_between(as_of, next_review_date)
        if days_overdue > 0:
            return min(1.0, 0.5 + 0.1 * days_overdue)
    days_since = max(0.0, _days_between(as_of, last_practiced_at))
    return 1.0 - math.exp(-days_since / (stability * 5.0))


def exam_roi(exam_weight: float, days_until_exam: int, is_core: bool) -> float:
    """Exam weight scaled by proximity and core-skill status."""
    if days_until_exam <= 7:
        proximity = 2.0
    elif days_until_exam <= 14:
        proximity = 1.5
    elif days_until_exam <= 30:
        proximity = 1.2
    else:
        proximity = 1.0
    core_boost = CORE_SKILL_BOOST if is_core else 1.0
    return exam_weight * proximity * core_boost


def error_closure(skill_id: str, signatures: Iterable[ErrorSignature]) -> float:
    """Recurring-error pressure on a skill, each tag contributing at most 0.5."""
    total = 0.0
    for sig in signatures:
        if sig.skill_id == skill_id and sig.count_30d > 0:
            total += min(0.5, 0.1 * sig.count_30d)
    return min(1.0, total)


def burnout_penalty(
    skill_id: str,
    item_type: str,
    activities: Iterable[RecentActivity],
    as_of: datetime,
) -> float:
    """Penalty for same-skill minutes and same-item-type repetitions in the last 24h."""
    skill_minutes = 0.0
    type_count = 0
    counted_attempts = set()
    for activity in activities:
        age = as_utc(as_of) - as_utc(activity.occurred_at)
        if age < timedelta(0) or age >= BURNOUT_WINDOW:
            continue
        if activity.skill_id == skill_id:
            skill_minutes += activity.minutes
        if activity.item_type != item_type:
            continue
        if activity.attempt_id is not None:
            if activity.attempt_id in counted_attempts:
                continue
            counted_attempts.add(activity.attempt_id)
        type_count += 1
    return min(0.5, skill_minutes / 60.0 * 0.2) + min(0.3, 0.1 * type_count)


def weighted_total(
    learning: float,
    retention: float,
    roi: float,
    closure: float,
    burnout: float,
) -> float:
    w = PLANNER_WEIGHTS
    return (
        w["learning_gain"] * learning
        + w["retention_gain"] * retention
        + w["exam_roi"] * roi
        + w["error_closure"] * closure
        - w["burnout_penalty"] * burnout
    )


def score_task(
    *,
    item_id: str,
    item_type: str,
    fmt: Optional[ItemFormat],
    difficulty: int,
    skill: Skill,
    mastery: Optional[MasteryRecord],
    days_until_written: int,
    signatures: Iterable[ErrorSignature],
    activities: Iterable[RecentActivity],
    as_of: datetime,
) -> TaskScore:
    """Score one (skill, item) candidate."""
    p_mastery = mastery.p_mastery if mastery else 0.0
    stability = mastery.stability if mastery else 1.0

    learning = learning_gain(p_mastery, fmt, difficulty, skill.exam_weight)
    retention = retention_gain(
        mastery.last_practiced_at if mastery else None,
        mastery.next_review_date if mastery else None,
        stability,
        as_of,
    )
    roi = exam_roi(skill.exam_weight, days_until_written, skill.is_core)
    closure = error_closure(skill.skill_id, signatures)
    burnout = burnout_penalty(skill.skill_id, item_type, activities, as_of)

    return TaskScore(
        item_id=item_id,
        skill_id=skill.skill_id,
        learning_gain=learning,
        retention_gain=retention,
        exam_roi=roi,
        error_closure=closure,
        burnout_penalty=burnout,
        total_score=weighted_total(learning, retention, roi, closure, burnout),
    )
