"""
Pydantic schemas for the daily plan generator.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from exam_mastery.schemas.mastery import (
    AttemptMode,
    CoverageDebt,
    ItemFormat,
    MasteryRecord,
    Skill,
)


class ExamPhase(str, Enum):
    """Bucket of days until the written exam."""
    DISTANT = "distant"          # >= 60 days
    APPROACHING = "approaching"  # 8-59 days
    CRITICAL = "critical"        # <= 7 days


class TaskType(str, Enum):
    """Kind of work a plan task asks for."""
    TIMED_PROOF = "timed_proof"
    SPACED_REVIEW = "spaced_review"
    ERROR_REMEDIATION = "error_remediation"
    WEAKNESS_DRILL = "weakness_drill"


class ErrorSignature(BaseModel):
    """Incidence of one error tag on one skill over the last 30 days."""

    skill_id: str
    error_tag: str
    count_30d: int = 0


class PlannerItem(BaseModel):
    """A concrete practice item available for a skill."""

    item_id: str
    skill_id: str
    item_type: str
    format: Optional[ItemFormat] = None
    difficulty: int = 3
    estimated_minutes: int


class RecentActivity(BaseModel):
    """Completed practice used for burnout detection."""

    skill_id: str
    item_type: str
    occurred_at: datetime
    minutes: float
    attempt_id: Optional[str] = None  # rows sharing an attempt repeat the item type once


class PlannerInput(BaseModel):
    """Snapshot of a user's state for one planning run."""

    user_id: str
    time_budget_minutes: int
    days_until_written: int
    days_until_oral: Optional[int] = None
    exam_phase: Optional[ExamPhase] = None  # derived from days_until_written when absent
    skills: List[Skill] = Field(default_factory=list)
    mastery: List[MasteryRecord] = Field(default_factory=list)
    coverage_debts: List[CoverageDebt] = Field(default_factory=list)
    error_signatures: List[ErrorSignature] = Field(default_factory=list)
    items: List[PlannerItem] = Field(default_factory=list)
    recent_activities: List[RecentActivity] = Field(default_factory=list)
    as_of: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TaskScore(BaseModel):
    """Per-factor breakdown of a candidate's priority score."""

    item_id: str
    skill_id: str
    learning_gain: float
    retention_gain: float
    exam_roi: float
    error_closure: float
    burnout_penalty: float
    total_score: float


class WhySelected(BaseModel):
    """One weighted contributor to a task's selection."""

    contributor: str
    value: float
    explanation: str


class PlanTask(BaseModel):
    """A selected, ordered task in the daily plan."""

    order: int
    task_type: TaskType
    skill_id: str
    item_id: str
    item_type: str
    format: ItemFormat
    mode: AttemptMode
    title: str
    estimated_minutes: int
    priority_score: float
    scoring_factors: TaskScore
    rationale: str
    why_selected: List[WhySelected]


class DailyPlanOutput(BaseModel):
    """The ranked, explainable task list for one (user, day)."""

    user_id: str
    plan_date: date
    exam_phase: ExamPhase
    time_budget_minutes: int
    total_minutes: int
    tasks: List[PlanTask] = Field(default_factory=list)
    input_fingerprint: str = ""
