"""
Mastery Engine - evidence-weighted mastery updates and verification gates.

Update rule:
- delta = clamp(0.15 * (score - 0.6) * format * mode * difficulty * coverage, -0.12, +0.10)
- stability grows on success, decays faster on failure

Verification gates:
- p_mastery >= 0.85
- 2 passing timed attempts, >= 24h apart
- top-3 historical error tags absent from the second pass
"""

from exam_mastery.engines.mastery.update_engine import MasteryUpdateEngine, update_mastery
from exam_mastery.engines.mastery.gate_verifier import GateVerifier, check_gate
from exam_mastery.engines.mastery.error_signatures import (
    error_signatures,
    recent_activities,
    top_error_tags,
)

__all__ = [
    "MasteryUpdateEngine",
    "update_mastery",
    "GateVerifier",
    "check_gate",
    "error_signatures",
    "recent_activities",
    "top_error_tags",
]
