"""
Orchestration - attempt processing, gate lifecycle and plan storage.
"""

from exam_mastery.orchestration.attempt_pipeline import (
    AttemptOutcome,
    AttemptPipeline,
    AttemptSubmission,
)
from exam_mastery.orchestration.gate_state import (
    can_transition,
    revoke_verification,
    transition,
    verification_from_gate,
)
from exam_mastery.orchestration.plan_service import DailyPlanService
from exam_mastery.orchestration.store import InMemoryMasteryStore, MasteryStore

__all__ = [
    "AttemptOutcome",
    "AttemptPipeline",
    "AttemptSubmission",
    "can_transition",
    "revoke_verification",
    "transition",
    "verification_from_gate",
    "DailyPlanService",
    "InMemoryMasteryStore",
    "MasteryStore",
]
