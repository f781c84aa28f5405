"""
Pydantic schemas for grading requests and structured grading output.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from exam_mastery.schemas.mastery import AttemptMode, ItemFormat


class RubricDimension(BaseModel):
    """One rubric category with its weight in the overall grade."""

    category: str
    weight: float
    description: str
    max_score: float = 5.0


class AuthorityExcerpt(BaseModel):
    """A vetted authority the grader may cite."""

    citation: str
    summary: str = ""


class LectureExcerpt(BaseModel):
    """A retrieved lecture passage relevant to the item."""

    lecture_title: str
    content: str
    timestamp: Optional[str] = None


class GradingRequest(BaseModel):
    """Everything needed to render a grading prompt for one response."""

    user_id: str
    item_id: str
    format: ItemFormat
    mode: AttemptMode = AttemptMode.PRACTICE
    prompt: str
    response: str  # answer text or oral transcript
    context: Optional[str] = None
    model_answer: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    rubric: List[RubricDimension] = Field(default_factory=list)
    authorities: List[AuthorityExcerpt] = Field(default_factory=list)
    lecture_excerpts: List[LectureExcerpt] = Field(default_factory=list)
    time_taken_sec: Optional[int] = None
    skill_ids: List[str] = Field(default_factory=list)
    unit_id: Optional[str] = None


class McqOption(BaseModel):
    """Single option of a multiple-choice item."""

    label: str
    text: str
    is_correct: bool = False


class RubricLine(BaseModel):
    """Score and feedback for one rubric category."""

    category: str
    score: float
    max_score: float
    feedback: str
    missing_points: List[str] = Field(default_factory=list)


class GradingOutput(BaseModel):
    """Strictly validated grading result.

    is_fallback / needs_manual_review flag a degraded result that was not
    produced by a valid grading response.
    """

    score_norm: float
    score_raw: float
    max_score: float
    rubric_breakdown: List[RubricLine]
    missing_points: List[str] = Field(default_factory=list)
    error_tags: List[str] = Field(default_factory=list)
    next_drills: List[str] = Field(default_factory=list)
    model_outline: str = ""
    evidence_requests: List[str] = Field(default_factory=list)

    is_fallback: bool = False
    needs_manual_review: bool = False
    generation_attempts: int = 0
    failure_reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.score_norm >= 0.6
