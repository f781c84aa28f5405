"""
Plan explanations: a short rationale plus the top weighted contributors.
"""

from datetime import datetime
from typing import List, Optional

from exam_mastery.engines.planner.scoring import PLANNER_WEIGHTS, as_utc
from exam_mastery.schemas.mastery import MasteryRecord, Skill
from exam_mastery.schemas.planner import TaskScore, WhySelected

WHY_SELECTED_COUNT = 3


def build_rationale(score: TaskScore) -> str:
    reasons = []
    if score.learning_gain > 0.5:
        reasons.append("High learning potential (low current mastery)")
    if score.retention_gain > 0.5:
        reasons.append("Due for review (retention at risk)")
    if score.exam_roi > 0.5:
        reasons.append("High exam weight + exam approaching")
    if score.error_closure > 0.3:
        reasons.append("Targets recurring error patterns")
    if not reasons:
        reasons.append("Balanced practice to maintain skills")
    return ". ".join(reasons) + "."


def build_why_selected(
    score: TaskScore,
    mastery: Optional[MasteryRecord],
    skill: Skill,
    days_until_written: int,
    as_of: datetime,
) -> List[WhySelected]:
    """
    Top contributors to the task's score, by absolute weighted value.

    The candidate set is fixed; ties keep the order listed below.
    """
    p_mastery = mastery.p_mastery if mastery else 0.0
    if mastery is not None and mastery.p_mastery < 0.5:
        learning_text = f"Low mastery ({p_mastery * 100:.0f}%) - high learning potential"
    else:
        learning_text = f"Current mastery {p_mastery * 100:.0f}%"

    if mastery is not None and mastery.last_practiced_at is not None:
        days_ago = round((as_utc(as_of) - as_utc(mastery.last_practiced_at)).total_seconds() / 86400)
        retention_text = f"Last practiced {days_ago} days ago"
    else:
        retention_text = "Never practiced before"

    if score.error_closure > 0:
        closure_text = f"Targets {round(score.error_closure * 10)} recurring error pattern(s)"
    else:
        closure_text = "No recurring error patterns"

    if score.burnout_penalty > 0.3:
        burnout_text = "Recent heavy practice on this skill"
    else:
        burnout_text = "Fresh topic for today"

    w = PLANNER_WEIGHTS
    contributions = (
        ("learning_gain", score.learning_gain * w["learning_gain"], learning_text),
        ("retention_risk", score.retention_gain * w["retention_gain"], retention_text),
        (
            "exam_roi",
            score.exam_roi * w["exam_roi"],
            f"Exam weight {skill.exam_weight * 100:.0f}%, {days_until_written} days until exam",
        ),
        ("error_patterns", score.error_closure * w["error_closure"], closure_text),
        ("burnout_penalty", -score.burnout_penalty * w["burnout_penalty"], burnout_text),
    )
    ranked = sorted(contributions, key=lambda c: abs(c[1]), reverse=True)
    return [
        WhySelected(contributor=name, value=value, explanation=text)
        for name, value, text in ranked[:WHY_SELECTED_COUNT]
    ]
