"""
Pydantic schemas shared by the engines and the orchestration layer.
"""

from exam_mastery.schemas.mastery import (
    Attempt,
    AttemptFacts,
    AttemptMode,
    CoverageDebt,
    ItemFormat,
    MasteryRecord,
    MasteryState,
    MasteryStateUpdate,
    Skill,
    SkillCoverage,
    TIMED_MODES,
)
from exam_mastery.schemas.verification import (
    GateAttempt,
    GateCheckResult,
    GateCondition,
    GateConditionResult,
    GateInput,
    GateStatus,
    GateVerification,
)
from exam_mastery.schemas.grading import (
    AuthorityExcerpt,
    GradingOutput,
    GradingRequest,
    LectureExcerpt,
    McqOption,
    RubricDimension,
    RubricLine,
)
from exam_mastery.schemas.planner import (
    DailyPlanOutput,
    ErrorSignature,
    ExamPhase,
    PlanTask,
    PlannerInput,
    PlannerItem,
    RecentActivity,
    TaskScore,
    TaskType,
    WhySelected,
)

__all__ = [
    "Attempt",
    "AttemptFacts",
    "AttemptMode",
    "CoverageDebt",
    "ItemFormat",
    "MasteryRecord",
    "MasteryState",
    "MasteryStateUpdate",
    "Skill",
    "SkillCoverage",
    "TIMED_MODES",
    "GateAttempt",
    "GateCheckResult",
    "GateCondition",
    "GateConditionResult",
    "GateInput",
    "GateStatus",
    "GateVerification",
    "AuthorityExcerpt",
    "GradingOutput",
    "GradingRequest",
    "LectureExcerpt",
    "McqOption",
    "RubricDimension",
    "RubricLine",
    "DailyPlanOutput",
    "ErrorSignature",
    "ExamPhase",
    "PlanTask",
    "PlannerInput",
    "PlannerItem",
    "RecentActivity",
    "TaskScore",
    "TaskType",
    "WhySelected",
]
