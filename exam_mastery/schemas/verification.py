"""
Pydantic schemas for skill verification gates.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from exam_mastery.schemas.mastery import AttemptMode, as_utc


class GateStatus(str, Enum):
    """Verification lifecycle of a (user, skill)."""
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REVOKED = "revoked"


class GateCondition(str, Enum):
    """The four independent gate conditions."""
    MASTERY_THRESHOLD = "mastery_threshold"
    TIMED_PASSES = "timed_passes"
    PASS_SPACING = "pass_spacing"
    ERROR_CLEARANCE = "error_clearance"


class GateAttempt(BaseModel):
    """A timed/exam_sim attempt as seen by the gate."""

    attempt_id: str
    score_norm: float
    submitted_at: datetime
    mode: AttemptMode = AttemptMode.TIMED
    error_tags: List[str] = Field(default_factory=list)

    @field_validator("submitted_at")
    @classmethod
    def normalize_submitted_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class GateInput(BaseModel):
    """Everything the gate verifier needs for one skill."""

    skill_id: str
    p_mastery: float
    timed_attempts: List[GateAttempt] = Field(default_factory=list)
    top_error_tags: List[str] = Field(default_factory=list)  # historical top-3


class GateConditionResult(BaseModel):
    """Outcome of checking one gate condition."""

    condition: GateCondition
    passed: bool
    current: Optional[float] = None
    required: float
    message: str


class GateCheckResult(BaseModel):
    """Structured gate outcome. An unmet gate is a normal result, not an error."""

    skill_id: str
    is_verified: bool
    p_mastery: float
    timed_pass_count: int
    hours_between_passes: Optional[float] = None
    error_tags_cleared: bool
    repeated_error_tags: List[str] = Field(default_factory=list)
    conditions: List[GateConditionResult]
    failure_reasons: List[str] = Field(default_factory=list)

    @property
    def unmet_conditions(self) -> List[GateCondition]:
        return [c.condition for c in self.conditions if not c.passed]


class GateVerification(BaseModel):
    """Verification record created when the gate passes; revocable by policy."""

    user_id: str
    skill_id: str
    p_mastery_at_verification: float
    timed_pass_count: int
    hours_between_passes: float
    error_tags_cleared: bool
    verified_at: datetime
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None

    @property
    def status(self) -> GateStatus:
        return GateStatus.REVOKED if self.revoked_at else GateStatus.VERIFIED
