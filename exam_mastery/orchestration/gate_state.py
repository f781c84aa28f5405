"""
Verification lifecycle for a (user, skill).

unverified -> verified   (gate passed)
verified   -> revoked    (policy, e.g. mastery decay)
revoked    -> verified   (gate passed again)

A revoked skill never silently returns to unverified.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from exam_mastery.exceptions import InvalidGateTransition
from exam_mastery.logging_config import get_logger
from exam_mastery.schemas.verification import GateCheckResult, GateStatus, GateVerification

logger = get_logger(__name__)

GATE_TRIGGER = "gate"
POLICY_TRIGGER = "policy"

# (from_status, to_status) -> triggers that may cause it
_TRANSITIONS: Dict[Tuple[GateStatus, GateStatus], Set[str]] = {
    (GateStatus.UNVERIFIED, GateStatus.VERIFIED): {GATE_TRIGGER},
    (GateStatus.VERIFIED, GateStatus.REVOKED): {POLICY_TRIGGER},
    (GateStatus.REVOKED, GateStatus.VERIFIED): {GATE_TRIGGER},
}


def valid_transitions(from_status: GateStatus) -> List[GateStatus]:
    """Return list of valid target statuses from the given status."""
    return sorted({t for (f, t) in _TRANSITIONS if f == from_status}, key=lambda s: s.value)


def can_transition(from_status: GateStatus, to_status: GateStatus, trigger: str) -> bool:
    return trigger in _TRANSITIONS.get((GateStatus(from_status), GateStatus(to_status)), set())


def transition(from_status: GateStatus, to_status: GateStatus, trigger: str) -> GateStatus:
    """Validate a lifecycle move and return the new status."""
    if not can_transition(from_status, to_status, trigger):
        raise InvalidGateTransition(
            f"Invalid transition: {GateStatus(from_status).value} -> "
            f"{GateStatus(to_status).value} by {trigger}"
        )
    return GateStatus(to_status)


def current_status(verification: Optional[GateVerification]) -> GateStatus:
    return verification.status if verification is not None else GateStatus.UNVERIFIED


def verification_from_gate(
    user_id: str,
    result: GateCheckResult,
    previous: Optional[GateVerification] = None,
    verified_at: Optional[datetime] = None,
) -> GateVerification:
    """
    Build the verification record for a passed gate.

    Raises:
        InvalidGateTransition: gate not passed, or skill already verified
    """
    if not result.is_verified:
        raise InvalidGateTransition(f"Gate not passed for {result.skill_id}: cannot verify")
    transition(current_status(previous), GateStatus.VERIFIED, GATE_TRIGGER)
    verification = GateVerification(
        user_id=user_id,
        skill_id=result.skill_id,
        p_mastery_at_verification=result.p_mastery,
        timed_pass_count=result.timed_pass_count,
        hours_between_passes=result.hours_between_passes or 0.0,
        error_tags_cleared=result.error_tags_cleared,
        verified_at=verified_at or datetime.now(timezone.utc),
    )
    logger.info(
        "Skill %s verified for %s",
        result.skill_id,
        user_id,
        extra={"skill_id": result.skill_id, "user_id": user_id},
    )
    return verification


def revoke_verification(
    verification: GateVerification,
    reason: str,
    revoked_at: Optional[datetime] = None,
) -> GateVerification:
    """Revoke an active verification. Returns a new record."""
    transition(verification.status, GateStatus.REVOKED, POLICY_TRIGGER)
    logger.info(
        "Verification of %s revoked for %s: %s",
        verification.skill_id,
        verification.user_id,
        reason,
        extra={"skill_id": verification.skill_id, "user_id": verification.user_id},
    )
    return verification.model_copy(
        update={
            "revoked_at": revoked_at or datetime.now(timezone.utc),
            "revoked_reason": reason,
        }
    )
