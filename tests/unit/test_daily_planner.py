"""Unit tests for daily plan generation."""

from collections import Counter
from datetime import timedelta

import pytest

from exam_mastery.engines.planner.daily_planner import DailyPlanGenerator, generate_daily_plan, input_fingerprint
from exam_mastery.exceptions import InputError
from exam_mastery.schemas.mastery import AttemptMode, CoverageDebt, ItemFormat, MasteryRecord, Skill
from exam_mastery.schemas.planner import (
    ErrorSignature,
    ExamPhase,
    PlannerInput,
    PlannerItem,
    TaskType,
)


def _skills(n=5):
    return [
        Skill(skill_id=f"s{i}", name=f"Skill {i}", exam_weight=0.2, formats=[ItemFormat.WRITTEN])
        for i in range(1, n + 1)
    ]


def _items(skill_ids, per_skill=3, minutes=10, item_type="issue_spotting"):
    return [
        PlannerItem(item_id=f"{sid}-item{j}", skill_id=sid, item_type=item_type, estimated_minutes=minutes)
        for sid in skill_ids
        for j in range(1, per_skill + 1)
    ]


def _fresh_record(skill_id, t0, p_mastery=0.3, **extra):
    """Practiced an hour ago with review not yet due, so retention pressure is low."""
    return MasteryRecord(
        user_id="u1",
        skill_id=skill_id,
        p_mastery=p_mastery,
        last_practiced_at=t0 - timedelta(hours=1),
        next_review_date=t0 + timedelta(days=2),
        **extra,
    )


def _input(t0, **overrides):
    skills = overrides.pop("skills", _skills())
    fields = dict(
        user_id="u1",
        time_budget_minutes=120,
        days_until_written=90,
        skills=skills,
        items=_items([s.skill_id for s in skills]),
        as_of=t0,
    )
    fields.update(overrides)
    return PlannerInput(**fields)


class TestPlanLimits:
    """Budget and cap invariants."""

    @pytest.mark.parametrize("budget", [0, -30])
    def test_no_budget_gives_empty_plan(self, t0, budget):
        plan = generate_daily_plan(_input(t0, time_budget_minutes=budget))
        assert plan.tasks == []
        assert plan.total_minutes == 0

    def test_task_cap(self, t0):
        plan = generate_daily_plan(_input(t0, time_budget_minutes=1000))
        assert len(plan.tasks) == 6
        counts = Counter(t.skill_id for t in plan.tasks)
        assert max(counts.values()) <= 2

    def test_per_skill_cap(self, t0):
        skills = _skills(1)
        plan = generate_daily_plan(
            _input(t0, skills=skills, items=_items(["s1"], per_skill=5), time_budget_minutes=200)
        )
        assert len(plan.tasks) == 2

    def test_budget_respected(self, t0):
        plan = generate_daily_plan(
            _input(t0, items=_items(["s1", "s2", "s3"], per_skill=1, minutes=50), time_budget_minutes=120)
        )
        assert len(plan.tasks) == 2
        assert plan.total_minutes == 100
        assert plan.total_minutes <= plan.time_budget_minutes

    def test_too_long_item_skipped(self, t0):
        """A higher scoring item that does not fit is skipped, later ones still admitted."""
        skills = [
            Skill(skill_id="big", name="Big", exam_weight=1.0, is_core=True),
            Skill(skill_id="small", name="Small", exam_weight=0.1),
        ]
        items = [
            PlannerItem(item_id="long", skill_id="big", item_type="essay", estimated_minutes=90),
            PlannerItem(item_id="short", skill_id="small", item_type="essay", estimated_minutes=30),
        ]
        plan = generate_daily_plan(_input(t0, skills=skills, items=items, time_budget_minutes=60))
        assert [t.item_id for t in plan.tasks] == ["short"]

    def test_tasks_reference_supplied_candidates(self, t0):
        inp = _input(t0)
        plan = generate_daily_plan(inp)
        supplied = {(i.skill_id, i.item_id) for i in inp.items}
        assert plan.tasks
        for task in plan.tasks:
            assert (task.skill_id, task.item_id) in supplied

    def test_duplicate_candidates_collapsed(self, t0):
        skills = _skills(1)
        item = PlannerItem(item_id="only", skill_id="s1", item_type="essay", estimated_minutes=10)
        plan = generate_daily_plan(_input(t0, skills=skills, items=[item, item, item]))
        assert len(plan.tasks) == 1


class TestPlanValidation:
    """Bad snapshots raise InputError."""

    def test_unknown_skill(self, t0):
        items = [PlannerItem(item_id="x", skill_id="ghost", item_type="essay", estimated_minutes=10)]
        with pytest.raises(InputError):
            generate_daily_plan(_input(t0, items=items))

    def test_non_positive_minutes(self, t0):
        items = [PlannerItem(item_id="x", skill_id="s1", item_type="essay", estimated_minutes=0)]
        with pytest.raises(InputError):
            generate_daily_plan(_input(t0, items=items))


class TestTaskClassification:
    """Task types and modes."""

    def test_ordering_and_priority(self, t0):
        plan = generate_daily_plan(_input(t0))
        assert [t.order for t in plan.tasks] == list(range(1, len(plan.tasks) + 1))
        scores = [t.priority_score for t in plan.tasks]
        assert scores == sorted(scores, reverse=True)

    def test_never_practiced_is_spaced_review(self, t0):
        plan = generate_daily_plan(_input(t0))
        assert {t.task_type for t in plan.tasks} == {TaskType.SPACED_REVIEW}
        assert {t.mode for t in plan.tasks} == {AttemptMode.PRACTICE}

    def test_timed_proof(self, t0):
        skills = _skills(1)
        plan = generate_daily_plan(
            _input(t0, skills=skills, items=_items(["s1"], per_skill=1), mastery=[_fresh_record("s1", t0, 0.9)])
        )
        assert plan.tasks[0].task_type == TaskType.TIMED_PROOF
        assert plan.tasks[0].mode == AttemptMode.TIMED

    def test_verified_skill_not_timed_proof(self, t0):
        skills = _skills(1)
        record = _fresh_record("s1", t0, 0.9, is_verified=True)
        plan = generate_daily_plan(
            _input(t0, skills=skills, items=_items(["s1"], per_skill=1), mastery=[record])
        )
        assert plan.tasks[0].task_type == TaskType.WEAKNESS_DRILL
        assert plan.tasks[0].mode == AttemptMode.TIMED

    def test_error_remediation(self, t0):
        skills = _skills(1)
        plan = generate_daily_plan(
            _input(
                t0,
                skills=skills,
                items=_items(["s1"], per_skill=1),
                mastery=[_fresh_record("s1", t0)],
                error_signatures=[ErrorSignature(skill_id="s1", error_tag="WRONG_RULE", count_30d=5)],
            )
        )
        assert plan.tasks[0].task_type == TaskType.ERROR_REMEDIATION

    def test_weakness_drill(self, t0):
        skills = _skills(1)
        plan = generate_daily_plan(
            _input(t0, skills=skills, items=_items(["s1"], per_skill=1), mastery=[_fresh_record("s1", t0)])
        )
        assert plan.tasks[0].task_type == TaskType.WEAKNESS_DRILL
        assert plan.tasks[0].mode == AttemptMode.PRACTICE

    def test_critical_phase_forces_timed(self, t0):
        plan = generate_daily_plan(_input(t0, days_until_written=5))
        assert plan.exam_phase == ExamPhase.CRITICAL
        assert {t.mode for t in plan.tasks} == {AttemptMode.TIMED}

    def test_approaching_phase_timed_debt(self, t0):
        skills = _skills(2)
        debt = CoverageDebt(
            user_id="u1", skill_id="s1", exam_phase="approaching", required_timed=1, completed_timed=0
        )
        plan = generate_daily_plan(
            _input(
                t0,
                skills=skills,
                items=_items(["s1", "s2"], per_skill=1),
                days_until_written=30,
                coverage_debts=[debt],
            )
        )
        modes = {t.skill_id: t.mode for t in plan.tasks}
        assert modes == {"s1": AttemptMode.TIMED, "s2": AttemptMode.PRACTICE}

    def test_explanations(self, t0):
        plan = generate_daily_plan(_input(t0))
        task = plan.tasks[0]
        assert task.rationale.endswith(".")
        assert len(task.why_selected) == 3
        values = [abs(w.value) for w in task.why_selected]
        assert values == sorted(values, reverse=True)
        assert task.title == "ISSUE SPOTTING: " + task.skill_id.replace("s", "Skill ")
        assert task.format == ItemFormat.WRITTEN


class TestFingerprint:
    def test_stable_for_same_input(self, t0):
        assert input_fingerprint(_input(t0)) == input_fingerprint(_input(t0))
        assert input_fingerprint(_input(t0)) != input_fingerprint(_input(t0, time_budget_minutes=60))

    def test_stored_on_plan(self, t0):
        inp = _input(t0)
        assert generate_daily_plan(inp).input_fingerprint == input_fingerprint(inp)


class TestChooseMode:
    """Practice vs timed mode selection."""

    def _debt(self, phase, **counts):
        return CoverageDebt(user_id="u1", skill_id="s1", exam_phase=phase.value, **counts)

    def test_critical_always_timed(self):
        assert DailyPlanGenerator.choose_mode(ExamPhase.CRITICAL, None, None) == AttemptMode.TIMED

    def test_high_mastery_timed(self):
        record = MasteryRecord(user_id="u1", skill_id="s1", p_mastery=0.75)
        assert DailyPlanGenerator.choose_mode(ExamPhase.DISTANT, record, None) == AttemptMode.TIMED

    def test_approaching_with_outstanding_timed_work(self):
        debt = self._debt(ExamPhase.APPROACHING, required_timed=1)
        assert DailyPlanGenerator.choose_mode(ExamPhase.APPROACHING, None, debt) == AttemptMode.TIMED

    def test_distant_phase_requires_no_timed_work(self):
        debt = self._debt(ExamPhase.DISTANT, required_timed=1)
        assert DailyPlanGenerator.choose_mode(ExamPhase.DISTANT, None, debt) == AttemptMode.PRACTICE

    def test_approaching_without_debt_is_practice(self):
        assert DailyPlanGenerator.choose_mode(ExamPhase.APPROACHING, None, None) == AttemptMode.PRACTICE
