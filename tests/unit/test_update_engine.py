"""Unit tests for the mastery update rule."""

import pytest

from exam_mastery.engines.mastery.update_engine import MasteryUpdateEngine, update_mastery
from exam_mastery.engines.mastery.weights import MAX_DELTA_NEGATIVE, MAX_DELTA_POSITIVE
from exam_mastery.exceptions import InputError
from exam_mastery.schemas.mastery import (
    AttemptFacts,
    AttemptMode,
    ItemFormat,
    MasteryState,
    SkillCoverage,
)


def _facts(score=0.8, fmt=ItemFormat.WRITTEN, mode=AttemptMode.PRACTICE, difficulty=3, skills=None):
    return AttemptFacts(
        skills=skills or [SkillCoverage(skill_id="s1")],
        score_norm=score,
        format=fmt,
        mode=mode,
        difficulty=difficulty,
    )


class TestCalculateDelta:
    """Tests for the clamped delta."""

    def test_positive_delta_clamped(self):
        """Perfect timed hard written answer hits the +0.10 cap."""
        delta = MasteryUpdateEngine.calculate_delta(1.0, ItemFormat.WRITTEN, AttemptMode.TIMED, 5)
        assert delta == MAX_DELTA_POSITIVE

    def test_negative_delta_clamped(self):
        """Zero score on a timed hard oral hits the -0.12 cap."""
        delta = MasteryUpdateEngine.calculate_delta(0.0, ItemFormat.ORAL, AttemptMode.TIMED, 5)
        assert delta == MAX_DELTA_NEGATIVE

    def test_unclamped_value(self):
        """0.15 * (0.8 - 0.6) * 1.15 for a practice written item at difficulty 3."""
        delta = MasteryUpdateEngine.calculate_delta(0.8, ItemFormat.WRITTEN, AttemptMode.PRACTICE, 3)
        assert delta == pytest.approx(0.0345)

    def test_coverage_weight_scales_delta(self):
        """Half coverage halves the delta."""
        full = MasteryUpdateEngine.calculate_delta(1.0, ItemFormat.WRITTEN, AttemptMode.PRACTICE, 3, 1.0)
        half = MasteryUpdateEngine.calculate_delta(1.0, ItemFormat.WRITTEN, AttemptMode.PRACTICE, 3, 0.5)
        assert half == pytest.approx(full / 2)

    def test_format_ordering(self):
        """oral > drafting > written > mcq > flashcard, all else equal."""
        order = [ItemFormat.ORAL, ItemFormat.DRAFTING, ItemFormat.WRITTEN, ItemFormat.MCQ, ItemFormat.FLASHCARD]
        deltas = [
            abs(MasteryUpdateEngine.calculate_delta(0.8, fmt, AttemptMode.PRACTICE, 3))
            for fmt in order
        ]
        assert deltas == sorted(deltas, reverse=True)
        assert len(set(deltas)) == len(deltas)

    def test_timed_moves_more_than_practice(self):
        practice = MasteryUpdateEngine.calculate_delta(0.8, ItemFormat.WRITTEN, AttemptMode.PRACTICE, 3)
        timed = MasteryUpdateEngine.calculate_delta(0.8, ItemFormat.WRITTEN, AttemptMode.TIMED, 3)
        assert timed > practice


class TestUpdateSkill:
    """Tests for applying one attempt to one skill."""

    def test_success_threshold_is_inclusive(self):
        """score 0.6 is a success with zero delta; stability grows."""
        update = MasteryUpdateEngine.update_skill("s1", MasteryState(p_mastery=0.4), _facts(score=0.6))
        assert update.was_success is True
        assert update.delta == pytest.approx(0.0)
        assert update.new_stability == pytest.approx(1.1)

    def test_below_threshold_is_failure(self):
        """score 0.59 fails and stability decays by 0.15."""
        update = MasteryUpdateEngine.update_skill("s1", MasteryState(p_mastery=0.4), _facts(score=0.59))
        assert update.was_success is False
        assert update.new_stability == pytest.approx(0.85)

    @pytest.mark.parametrize("fmt", list(ItemFormat))
    @pytest.mark.parametrize("mode", list(AttemptMode))
    def test_was_success_independent_of_format_and_mode(self, fmt, mode):
        assert MasteryUpdateEngine.update_skill("s1", MasteryState(), _facts(0.6, fmt, mode, 1)).was_success
        assert not MasteryUpdateEngine.update_skill("s1", MasteryState(), _facts(0.5, fmt, mode, 5)).was_success

    def test_p_mastery_clamped_to_one(self):
        update = MasteryUpdateEngine.update_skill(
            "s1", MasteryState(p_mastery=0.98), _facts(score=1.0, mode=AttemptMode.TIMED, difficulty=5)
        )
        assert update.new_p_mastery == 1.0
        assert update.delta == MAX_DELTA_POSITIVE

    def test_p_mastery_clamped_to_zero(self):
        update = MasteryUpdateEngine.update_skill(
            "s1", MasteryState(p_mastery=0.05), _facts(score=0.0, fmt=ItemFormat.ORAL, difficulty=5)
        )
        assert update.new_p_mastery == 0.0

    def test_stability_bounds(self):
        high = MasteryUpdateEngine.update_skill("s1", MasteryState(stability=2.0), _facts(score=0.9))
        low = MasteryUpdateEngine.update_skill("s1", MasteryState(stability=0.3), _facts(score=0.1))
        assert high.new_stability == 2.0
        assert low.new_stability == 0.3

    @pytest.mark.parametrize(
        "state,facts,field",
        [
            (MasteryState(), _facts(score=1.2), "score_norm"),
            (MasteryState(), _facts(score=-0.1), "score_norm"),
            (MasteryState(), _facts(difficulty=6), "difficulty"),
            (MasteryState(p_mastery=1.5), _facts(), "p_mastery"),
            (MasteryState(stability=3.0), _facts(), "stability"),
        ],
    )
    def test_out_of_range_rejected(self, state, facts, field):
        with pytest.raises(InputError) as exc_info:
            MasteryUpdateEngine.update_skill("s1", state, facts)
        assert exc_info.value.field == field

    def test_zero_coverage_weight_rejected(self):
        with pytest.raises(InputError):
            MasteryUpdateEngine.update_skill("s1", MasteryState(), _facts(), coverage_weight=0.0)


class TestUpdateMastery:
    """Tests for the multi-skill surface."""

    def test_independent_deltas_per_skill(self):
        """Each tested skill gets its own delta scaled by its coverage weight."""
        facts = _facts(
            score=1.0,
            skills=[SkillCoverage(skill_id="s1"), SkillCoverage(skill_id="s2", coverage_weight=0.5)],
        )
        updates = update_mastery({"s1": MasteryState(p_mastery=0.5)}, facts, {"s1", "s2"})
        by_skill = {u.skill_id: u for u in updates}
        assert by_skill["s1"].old_p_mastery == 0.5
        assert by_skill["s2"].old_p_mastery == 0.0
        assert by_skill["s2"].old_stability == 1.0
        assert by_skill["s2"].delta == pytest.approx(by_skill["s1"].delta / 2)

    def test_unknown_skill_rejected(self):
        with pytest.raises(InputError):
            update_mastery({}, _facts(skills=[SkillCoverage(skill_id="ghost")]), {"s1"})

    def test_duplicate_skill_rejected(self):
        facts = _facts(skills=[SkillCoverage(skill_id="s1"), SkillCoverage(skill_id="s1")])
        with pytest.raises(InputError):
            update_mastery({}, facts, {"s1"})

    def test_boolean_score_rejected(self):
        facts = AttemptFacts.model_construct(
            skills=[SkillCoverage(skill_id="s1")],
            score_norm=True,
            format=ItemFormat.WRITTEN,
            mode=AttemptMode.PRACTICE,
            difficulty=3,
        )
        with pytest.raises(InputError):
            update_mastery({}, facts, {"s1"})
