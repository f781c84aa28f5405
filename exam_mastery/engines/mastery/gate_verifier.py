"""
Gate Verifier - decides when a skill counts as verified.

Gates (all required, evaluated independently):
- p_mastery >= 0.85
- >= 2 passing (score >= 0.6) timed/exam_sim attempts
- first two passes >= 24 hours apart
- none of the historical top-3 error tags recur in the second pass

Every unmet gate contributes a reason; an unmet gate is a normal result.
"""

from typing import List

from exam_mastery.engines.mastery.weights import PASS_THRESHOLD
from exam_mastery.schemas.mastery import TIMED_MODES
from exam_mastery.schemas.verification import (
    GateAttempt,
    GateCheckResult,
    GateCondition,
    GateConditionResult,
    GateInput,
)

MIN_P_MASTERY = 0.85
REQUIRED_TIMED_PASSES = 2
MIN_HOURS_BETWEEN_PASSES = 24.0
TOP_ERROR_TAG_COUNT = 3


class GateVerifier:
    """Evaluates the four verification gates for one skill."""

    @classmethod
    def passing_attempts(cls, attempts: List[GateAttempt]) -> List[GateAttempt]:
        """Passing timed/exam_sim attempts in chronological order."""
        timed = [a for a in attempts if a.mode in TIMED_MODES]
        timed.sort(key=lambda a: a.submitted_at)
        return [a for a in timed if a.score_norm >= PASS_THRESHOLD]

    @classmethod
    def check_mastery(cls, p_mastery: float) -> GateConditionResult:
        passed = p_mastery >= MIN_P_MASTERY
        return GateConditionResult(
            condition=GateCondition.MASTERY_THRESHOLD,
            passed=passed,
            current=p_mastery,
            required=MIN_P_MASTERY,
            message=(
                f"Mastery {p_mastery * 100:.1f}% meets {MIN_P_MASTERY * 100:.0f}%"
                if passed
                else f"Mastery {p_mastery * 100:.1f}% is below the required {MIN_P_MASTERY * 100:.0f}%"
            ),
        )

    @classmethod
    def check_pass_count(cls, passes: List[GateAttempt]) -> GateConditionResult:
        count = len(passes)
        passed = count >= REQUIRED_TIMED_PASSES
        return GateConditionResult(
            condition=GateCondition.TIMED_PASSES,
            passed=passed,
            current=count,
            required=REQUIRED_TIMED_PASSES,
            message=(
                f"Timed passes: {count}/{REQUIRED_TIMED_PASSES}"
                if passed
                else f"Only {count}/{REQUIRED_TIMED_PASSES} passing timed attempts"
            ),
        )

    @classmethod
    def check_spacing(cls, first: GateAttempt, second: GateAttempt) -> GateConditionResult:
        hours = (second.submitted_at - first.submitted_at).total_seconds() / 3600.0
        passed = hours >= MIN_HOURS_BETWEEN_PASSES
        return GateConditionResult(
            condition=GateCondition.PASS_SPACING,
            passed=passed,
            current=hours,
            required=MIN_HOURS_BETWEEN_PASSES,
            message=(
                f"{hours:.1f} hours between passes"
                if passed
                else (
                    f"Only {hours:.1f} hours between the first two timed passes "
                    f"(need {MIN_HOURS_BETWEEN_PASSES:.0f})"
                )
            ),
        )

    @classmethod
    def repeated_tags(cls, second: GateAttempt, top_error_tags: List[str]) -> List[str]:
        second_tags = set(second.error_tags)
        return [t for t in top_error_tags[:TOP_ERROR_TAG_COUNT] if t in second_tags]

    @classmethod
    def check_error_clearance(cls, repeated: List[str]) -> GateConditionResult:
        passed = not repeated
        return GateConditionResult(
            condition=GateCondition.ERROR_CLEARANCE,
            passed=passed,
            current=len(repeated),
            required=0,
            message=(
                "Top error tags cleared on second pass"
                if passed
                else f"Top error tags repeated in second pass: {', '.join(repeated)}"
            ),
        )

    @classmethod
    def check(cls, gate_input: GateInput) -> GateCheckResult:
        """Evaluate all gates and collect a reason for each unmet one."""
        passes = cls.passing_attempts(gate_input.timed_attempts)

        conditions = [
            cls.check_mastery(gate_input.p_mastery),
            cls.check_pass_count(passes),
        ]

        hours = None
        repeated: List[str] = []
        cleared = False
        # Spacing and error clearance are only measurable once two passes exist
        if len(passes) >= REQUIRED_TIMED_PASSES:
            first, second = passes[0], passes[1]
            spacing = cls.check_spacing(first, second)
            hours = spacing.current
            repeated = cls.repeated_tags(second, gate_input.top_error_tags)
            clearance = cls.check_error_clearance(repeated)
            cleared = clearance.passed
            conditions.extend([spacing, clearance])

        is_verified = len(conditions) == 4 and all(c.passed for c in conditions)

        return GateCheckResult(
            skill_id=gate_input.skill_id,
            is_verified=is_verified,
            p_mastery=gate_input.p_mastery,
            timed_pass_count=len(passes),
            hours_between_passes=hours,
            error_tags_cleared=cleared,
            repeated_error_tags=repeated,
            conditions=conditions,
            failure_reasons=[c.message for c in conditions if not c.passed],
        )


def check_gate(gate_input: GateInput) -> GateCheckResult:
    """Pure gate check for one skill's history."""
    return GateVerifier.check(gate_input)
