"""
Error signatures - bookkeeping derived from the attempt ledger.

Feeds the gate (historical top-3 error tags) and the planner (30-day error
incidence, last-24h activity).
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from exam_mastery.engines.mastery.gate_verifier import TOP_ERROR_TAG_COUNT
from exam_mastery.schemas.mastery import Attempt, as_utc
from exam_mastery.schemas.planner import ErrorSignature, RecentActivity

ERROR_WINDOW_DAYS = 30
ACTIVITY_WINDOW_HOURS = 24


def top_error_tags(
    attempts: Iterable[Attempt],
    skill_id: str,
    before: Optional[datetime] = None,
    limit: int = TOP_ERROR_TAG_COUNT,
) -> List[str]:
    """
    Most frequent error tags on a skill's attempts.

    Args:
        attempts: Attempt ledger (any order, any user filtering done by caller)
        skill_id: Skill whose history is counted
        before: Only count attempts submitted strictly before this instant
        limit: Number of tags to return

    Ties are broken alphabetically so the result is stable.
    """
    if before is not None:
        before = as_utc(before)
    counts: Counter = Counter()
    for attempt in attempts:
        if not attempt.tests_skill(skill_id):
            continue
        if before is not None and attempt.submitted_at >= before:
            continue
        counts.update(set(attempt.error_tags))
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [tag for tag, _ in ranked[:limit]]


def error_signatures(
    attempts: Iterable[Attempt],
    as_of: datetime,
    window_days: int = ERROR_WINDOW_DAYS,
) -> List[ErrorSignature]:
    """Per (skill, tag) error counts over the trailing window."""
    as_of = as_utc(as_of)
    since = as_of - timedelta(days=window_days)
    counts: Dict[tuple, int] = {}
    for attempt in attempts:
        if not since <= attempt.submitted_at <= as_of:
            continue
        for skill_id in attempt.skill_ids:
            for tag in set(attempt.error_tags):
                counts[(skill_id, tag)] = counts.get((skill_id, tag), 0) + 1
    return [
        ErrorSignature(skill_id=skill_id, error_tag=tag, count_30d=count)
        for (skill_id, tag), count in sorted(counts.items())
    ]


def recent_activities(
    attempts: Iterable[Attempt],
    as_of: datetime,
    item_types: Optional[Mapping[str, str]] = None,
    window_hours: int = ACTIVITY_WINDOW_HOURS,
) -> List[RecentActivity]:
    """
    Practice load in the trailing window, one entry per tested skill.

    item_types maps item id -> item type; the attempt format is used when the
    item is not in the mapping.
    """
    as_of = as_utc(as_of)
    since = as_of - timedelta(hours=window_hours)
    item_types = item_types or {}
    activities = []
    for attempt in attempts:
        if not since <= attempt.submitted_at <= as_of:
            continue
        item_type = item_types.get(attempt.item_id, attempt.format.value)
        for skill_id in attempt.skill_ids:
            activities.append(
                RecentActivity(
                    skill_id=skill_id,
                    item_type=item_type,
                    attempt_id=attempt.attempt_id,
                    occurred_at=attempt.submitted_at,
                    minutes=attempt.time_taken_sec / 60.0,
                )
            )
    return activities
