"""
Mastery Update Engine - turns one graded attempt into per-skill mastery deltas.

Rule, per tested skill:
    quality   = score_norm - 0.6
    weight    = format_weight * mode_weight * difficulty_factor * coverage_weight
    delta     = clamp(0.15 * quality * weight, -0.12, +0.10)
    p_mastery = clamp01(p_mastery + delta)
    stability += 0.10 on success, -= 0.15 on failure, within [0.3, 2.0]

Pure and synchronous: safe to call concurrently, persistence is the caller's job.
"""

import math
from typing import Collection, List, Mapping, Optional, Union

from exam_mastery.engines.mastery import weights
from exam_mastery.exceptions import InputError
from exam_mastery.logging_config import get_logger
from exam_mastery.schemas.mastery import (
    AttemptFacts,
    AttemptMode,
    ItemFormat,
    MasteryState,
    MasteryStateUpdate,
    Skill,
)

logger = get_logger(__name__)

SkillCatalog = Union[Mapping[str, Skill], Collection[str]]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _require_number(value: object, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputError(f"{field} must be a number, got {type(value).__name__}", field=field)
    if not math.isfinite(value):
        raise InputError(f"{field} must be finite, got {value}", field=field)
    return float(value)


class MasteryUpdateEngine:
    """
    Applies the mastery update rule.

    All lookups go through the fixed tables in weights.py; anything outside
    them is rejected with InputError rather than silently defaulted.
    """

    @classmethod
    def validate_facts(cls, facts: AttemptFacts) -> None:
        """Range-check the attempt-level facts shared by every tested skill."""
        score = _require_number(facts.score_norm, "score_norm")
        if not 0.0 <= score <= 1.0:
            raise InputError(f"score_norm {score} outside [0, 1]", field="score_norm")
        if isinstance(facts.difficulty, bool) or facts.difficulty not in weights.DIFFICULTY_FACTORS:
            raise InputError(f"difficulty {facts.difficulty!r} outside 1..5", field="difficulty")
        if ItemFormat(facts.format) not in weights.FORMAT_WEIGHTS:
            raise InputError(f"unknown format {facts.format!r}", field="format")
        if AttemptMode(facts.mode) not in weights.MODE_WEIGHTS:
            raise InputError(f"unknown mode {facts.mode!r}", field="mode")
        if not facts.skills:
            raise InputError("attempt tests no skills", field="skills")

    @classmethod
    def resolve_coverage_weight(cls, coverage_weight: Optional[float]) -> float:
        if coverage_weight is None:
            return 1.0
        value = _require_number(coverage_weight, "coverage_weight")
        if not 0.0 < value <= 1.0:
            raise InputError(f"coverage_weight {value} outside (0, 1]", field="coverage_weight")
        return value

    @classmethod
    def evidence_weight(
        cls,
        fmt: ItemFormat,
        mode: AttemptMode,
        difficulty: int,
        coverage_weight: float,
    ) -> float:
        return (
            weights.format_weight(fmt)
            * weights.mode_weight(mode)
            * weights.difficulty_factor(difficulty)
            * coverage_weight
        )

    @classmethod
    def calculate_delta(
        cls,
        score_norm: float,
        fmt: ItemFormat,
        mode: AttemptMode,
        difficulty: int,
        coverage_weight: float = 1.0,
    ) -> float:
        """Clamped mastery delta for one skill."""
        quality = score_norm - weights.PASS_THRESHOLD
        weight = cls.evidence_weight(fmt, mode, difficulty, coverage_weight)
        raw_delta = weights.LEARNING_RATE * quality * weight
        return _clamp(raw_delta, weights.MAX_DELTA_NEGATIVE, weights.MAX_DELTA_POSITIVE)

    @classmethod
    def next_stability(cls, stability: float, was_success: bool) -> float:
        if was_success:
            stability += weights.STABILITY_GROWTH
        else:
            stability -= weights.STABILITY_DECAY
        return _clamp(stability, weights.MIN_STABILITY, weights.MAX_STABILITY)

    @classmethod
    def update_skill(
        cls,
        skill_id: str,
        current: MasteryState,
        facts: AttemptFacts,
        coverage_weight: Optional[float] = None,
    ) -> MasteryStateUpdate:
        """
        Apply one attempt to one skill.

        Args:
            skill_id: Skill being updated
            current: Current p_mastery / stability for (user, skill)
            facts: Graded attempt facts
            coverage_weight: This skill's share of the item, 1.0 when None

        Returns:
            MasteryStateUpdate with old/new values, delta and success flag
        """
        cls.validate_facts(facts)
        weight = cls.resolve_coverage_weight(coverage_weight)

        old_p = _require_number(current.p_mastery, "p_mastery")
        if not 0.0 <= old_p <= 1.0:
            raise InputError(f"p_mastery {old_p} outside [0, 1]", field="p_mastery")
        old_stability = _require_number(current.stability, "stability")
        if not weights.MIN_STABILITY <= old_stability <= weights.MAX_STABILITY:
            raise InputError(
                f"stability {old_stability} outside [{weights.MIN_STABILITY}, {weights.MAX_STABILITY}]",
                field="stability",
            )

        delta = cls.calculate_delta(facts.score_norm, facts.format, facts.mode, facts.difficulty, weight)
        was_success = facts.score_norm >= weights.PASS_THRESHOLD
        new_p = _clamp(old_p + delta, 0.0, 1.0)

        return MasteryStateUpdate(
            skill_id=skill_id,
            old_p_mastery=old_p,
            new_p_mastery=new_p,
            delta=delta,
            old_stability=old_stability,
            new_stability=cls.next_stability(old_stability, was_success),
            was_success=was_success,
        )


def update_mastery(
    states: Mapping[str, MasteryState],
    facts: AttemptFacts,
    skill_catalog: SkillCatalog,
) -> List[MasteryStateUpdate]:
    """
    Apply one attempt to every skill it tests.

    Deltas are independent per skill; there is no cap on the total mastery
    gained across skills from a single attempt.

    Args:
        states: Current state per skill id; missing skills start from the
            defaults of a freshly created record
        facts: Graded attempt facts
        skill_catalog: Known skills (mapping or collection of ids)

    Raises:
        InputError: unknown skill id or out-of-range numeric field
    """
    MasteryUpdateEngine.validate_facts(facts)

    seen = set()
    for coverage in facts.skills:
        if coverage.skill_id not in skill_catalog:
            raise InputError(f"unknown skill id {coverage.skill_id!r}", field="skill_id")
        if coverage.skill_id in seen:
            raise InputError(f"skill id {coverage.skill_id!r} listed twice", field="skill_id")
        seen.add(coverage.skill_id)

    updates = []
    for coverage in facts.skills:
        current = states.get(coverage.skill_id) or MasteryState()
        update = MasteryUpdateEngine.update_skill(
            coverage.skill_id, current, facts, coverage.coverage_weight
        )
        logger.debug(
            "Mastery %s: %.3f -> %.3f (delta %+.4f)",
            update.skill_id,
            update.old_p_mastery,
            update.new_p_mastery,
            update.delta,
            extra={"skill_id": update.skill_id, "delta": update.delta},
        )
        updates.append(update)
    return updates
