"""
Pydantic schemas for skills, mastery records and attempts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ItemFormat(str, Enum):
    """Answer format of a practice item."""
    WRITTEN = "written"      # issue spotting / essay
    ORAL = "oral"
    DRAFTING = "drafting"
    MCQ = "mcq"
    FLASHCARD = "flashcard"


class AttemptMode(str, Enum):
    """Conditions under which an attempt was made."""
    PRACTICE = "practice"
    TIMED = "timed"
    EXAM_SIM = "exam_sim"


TIMED_MODES = frozenset((AttemptMode.TIMED, AttemptMode.EXAM_SIM))


class Skill(BaseModel):
    """Catalog entry for a micro-skill."""

    skill_id: str
    name: str = ""
    unit_id: Optional[str] = None
    exam_weight: float = Field(ge=0.0, le=1.0)
    difficulty: int = Field(default=3, ge=1, le=5)
    formats: List[ItemFormat] = Field(default_factory=lambda: [ItemFormat.WRITTEN])
    is_core: bool = False


class MasteryState(BaseModel):
    """Snapshot of the two numbers the update rule reads."""

    p_mastery: float = 0.0
    stability: float = 1.0


class MasteryRecord(BaseModel):
    """Per (user, skill) mastery state as persisted by the caller."""

    user_id: str
    skill_id: str
    p_mastery: float = Field(default=0.0, ge=0.0, le=1.0)
    stability: float = Field(default=1.0, ge=0.3, le=2.0)
    last_practiced_at: Optional[datetime] = None
    next_review_date: Optional[datetime] = None
    reps_count: int = Field(default=0, ge=0)
    is_verified: bool = False
    verified_at: Optional[datetime] = None

    def state(self) -> MasteryState:
        return MasteryState(p_mastery=self.p_mastery, stability=self.stability)


class SkillCoverage(BaseModel):
    """One skill tested by an item and its share of the credit."""

    skill_id: str
    coverage_weight: Optional[float] = None  # defaults to 1.0 when absent


class AttemptFacts(BaseModel):
    """
    The graded facts of an attempt that the update rule consumes.

    Ranges are checked by the update engine so violations surface as InputError.
    """

    skills: List[SkillCoverage]
    score_norm: float
    format: ItemFormat
    mode: AttemptMode
    difficulty: int = 3


class Attempt(BaseModel):
    """An immutable, graded attempt in the evidence ledger."""

    model_config = ConfigDict(frozen=True)

    attempt_id: str
    user_id: str
    item_id: str
    skills: Tuple[SkillCoverage, ...]
    format: ItemFormat
    mode: AttemptMode
    score_norm: float = Field(ge=0.0, le=1.0)
    difficulty: int = Field(default=3, ge=1, le=5)
    time_taken_sec: int = Field(default=0, ge=0)
    error_tags: Tuple[str, ...] = ()
    submitted_at: datetime

    @field_validator("submitted_at")
    @classmethod
    def normalize_submitted_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def skill_ids(self) -> List[str]:
        return [s.skill_id for s in self.skills]

    def tests_skill(self, skill_id: str) -> bool:
        return any(s.skill_id == skill_id for s in self.skills)

    def facts(self) -> AttemptFacts:
        return AttemptFacts(
            skills=list(self.skills),
            score_norm=self.score_norm,
            format=self.format,
            mode=self.mode,
            difficulty=self.difficulty,
        )


class MasteryStateUpdate(BaseModel):
    """Result of applying one attempt to one skill."""

    skill_id: str
    old_p_mastery: float
    new_p_mastery: float
    delta: float
    old_stability: float
    new_stability: float
    was_success: bool


class CoverageDebt(BaseModel):
    """Coverage bookkeeping per (user, skill, phase), maintained externally."""

    user_id: str
    skill_id: str
    exam_phase: str
    required_practice: int = 0
    completed_practice: int = 0
    required_timed: int = 0
    completed_timed: int = 0
    required_mocks: int = 0
    completed_mocks: int = 0
    debt_score: float = 0.0

    @property
    def timed_outstanding(self) -> int:
        return max(0, self.required_timed - self.completed_timed)
