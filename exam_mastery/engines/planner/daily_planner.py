"""
Daily Plan Generator - ranks (skill, item) candidates and fills the day.

Pipeline:
1. Validate the snapshot (known skills, positive item durations)
2. Score every distinct (skill, item) pair with the objective function
3. Sort by score, ties by coverage debt then ids
4. Greedily admit tasks that fit the remaining budget, at most 2 per skill
   and 6 per day
5. Classify each task, pick its mode, attach rationale and contributors
"""

import hashlib
from datetime import date
from typing import Dict, List, Optional, Tuple

from exam_mastery.engines.planner.exam_phase import coverage_requirements, determine_exam_phase
from exam_mastery.engines.planner.explain import build_rationale, build_why_selected
from exam_mastery.engines.planner.scoring import as_utc, score_task
from exam_mastery.exceptions import InputError
from exam_mastery.logging_config import get_logger
from exam_mastery.schemas.mastery import (
    AttemptMode,
    CoverageDebt,
    ItemFormat,
    MasteryRecord,
    Skill,
)
from exam_mastery.schemas.planner import (
    DailyPlanOutput,
    ExamPhase,
    PlanTask,
    PlannerInput,
    PlannerItem,
    TaskScore,
    TaskType,
)

logger = get_logger(__name__)

MAX_TASKS_PER_SKILL = 2
MAX_TASKS_PER_DAY = 6
TIMED_PROOF_THRESHOLD = 0.85
TIMED_BIAS_THRESHOLD = 0.7
SPACED_REVIEW_THRESHOLD = 0.6
ERROR_REMEDIATION_THRESHOLD = 0.3


def input_fingerprint(planner_input: PlannerInput) -> str:
    """Stable hash of the planning snapshot."""
    return hashlib.sha256(planner_input.model_dump_json().encode()).hexdigest()


def humanize_item_type(item_type: str) -> str:
    return item_type.replace("_", " ").upper()


class DailyPlanGenerator:
    """Builds the explainable daily plan from a state snapshot."""

    @classmethod
    def _index_skills(cls, skills: List[Skill]) -> Dict[str, Skill]:
        catalog: Dict[str, Skill] = {}
        for skill in skills:
            if skill.skill_id in catalog:
                raise InputError(f"Duplicate skill {skill.skill_id} in catalog", field="skills")
            catalog[skill.skill_id] = skill
        return catalog

    @classmethod
    def _validate_items(cls, items: List[PlannerItem], catalog: Dict[str, Skill]) -> List[PlannerItem]:
        """Reject unknown skills and bad durations; drop duplicate (skill, item) pairs."""
        seen = set()
        unique = []
        for item in items:
            if item.skill_id not in catalog:
                raise InputError(
                    f"Item {item.item_id} references unknown skill {item.skill_id}",
                    field="items",
                )
            if item.estimated_minutes <= 0:
                raise InputError(
                    f"Item {item.item_id} has non-positive estimated_minutes {item.estimated_minutes}",
                    field="estimated_minutes",
                )
            if not 1 <= item.difficulty <= 5:
                raise InputError(
                    f"Item {item.item_id} difficulty {item.difficulty} outside 1..5",
                    field="difficulty",
                )
            key = (item.skill_id, item.item_id)
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)
        return unique

    @classmethod
    def item_format(cls, item: PlannerItem, skill: Skill) -> ItemFormat:
        if item.format is not None:
            return item.format
        if skill.formats:
            return skill.formats[0]
        return ItemFormat.WRITTEN

    @classmethod
    def choose_mode(
        cls,
        phase: ExamPhase,
        mastery: Optional[MasteryRecord],
        debt: Optional[CoverageDebt],
    ) -> AttemptMode:
        if phase == ExamPhase.CRITICAL:
            return AttemptMode.TIMED
        if mastery is not None and mastery.p_mastery >= TIMED_BIAS_THRESHOLD:
            return AttemptMode.TIMED
        timed_required = coverage_requirements(phase)["timed"] > 0
        if timed_required and debt is not None and debt.timed_outstanding > 0:
            return AttemptMode.TIMED
        return AttemptMode.PRACTICE

    @classmethod
    def classify(cls, score: TaskScore, mastery: Optional[MasteryRecord]) -> TaskType:
        if (
            mastery is not None
            and mastery.p_mastery >= TIMED_PROOF_THRESHOLD
            and not mastery.is_verified
        ):
            return TaskType.TIMED_PROOF
        if score.retention_gain > SPACED_REVIEW_THRESHOLD:
            return TaskType.SPACED_REVIEW
        if score.error_closure > ERROR_REMEDIATION_THRESHOLD:
            return TaskType.ERROR_REMEDIATION
        return TaskType.WEAKNESS_DRILL

    @classmethod
    def generate(cls, planner_input: PlannerInput) -> DailyPlanOutput:
        """
        Generate the plan for planner_input.user_id on the day of as_of.

        Raises:
            InputError: unknown skill on an item, bad durations or difficulty
        """
        phase = planner_input.exam_phase or determine_exam_phase(planner_input.days_until_written)
        plan_date: date = as_utc(planner_input.as_of).date()
        budget = planner_input.time_budget_minutes

        plan = DailyPlanOutput(
            user_id=planner_input.user_id,
            plan_date=plan_date,
            exam_phase=phase,
            time_budget_minutes=budget,
            total_minutes=0,
            input_fingerprint=input_fingerprint(planner_input),
        )

        if budget <= 0:
            logger.info("Empty plan for %s: no time budget", planner_input.user_id)
            return plan

        catalog = cls._index_skills(planner_input.skills)
        items = cls._validate_items(planner_input.items, catalog)
        if not items:
            logger.info("Empty plan for %s: no candidate items", planner_input.user_id)
            return plan

        mastery: Dict[str, MasteryRecord] = {
            r.skill_id: r for r in planner_input.mastery if r.user_id == planner_input.user_id
        }
        debts: Dict[str, CoverageDebt] = {}
        for debt in planner_input.coverage_debts:
            if debt.user_id == planner_input.user_id and debt.exam_phase == phase.value:
                debts[debt.skill_id] = debt

        candidates: List[Tuple[PlannerItem, ItemFormat, TaskScore]] = []
        for item in items:
            skill = catalog[item.skill_id]
            fmt = cls.item_format(item, skill)
            score = score_task(
                item_id=item.item_id,
                item_type=item.item_type,
                fmt=fmt,
                difficulty=item.difficulty,
                skill=skill,
                mastery=mastery.get(item.skill_id),
                days_until_written=planner_input.days_until_written,
                signatures=planner_input.error_signatures,
                activities=planner_input.recent_activities,
                as_of=planner_input.as_of,
            )
            candidates.append((item, fmt, score))

        def sort_key(candidate: Tuple[PlannerItem, ItemFormat, TaskScore]):
            item, _, score = candidate
            debt = debts.get(item.skill_id)
            return (
                -score.total_score,
                -(debt.debt_score if debt else 0.0),
                item.skill_id,
                item.item_id,
            )

        candidates.sort(key=sort_key)

        remaining = budget
        per_skill: Dict[str, int] = {}
        tasks: List[PlanTask] = []
        for item, fmt, score in candidates:
            if len(tasks) >= MAX_TASKS_PER_DAY:
                break
            if item.estimated_minutes > remaining:
                continue
            if per_skill.get(item.skill_id, 0) >= MAX_TASKS_PER_SKILL:
                continue

            skill = catalog[item.skill_id]
            record = mastery.get(item.skill_id)
            task_type = cls.classify(score, record)
            mode = cls.choose_mode(phase, record, debts.get(item.skill_id))
            if task_type == TaskType.TIMED_PROOF:
                mode = AttemptMode.TIMED

            tasks.append(
                PlanTask(
                    order=len(tasks) + 1,
                    task_type=task_type,
                    skill_id=item.skill_id,
                    item_id=item.item_id,
                    item_type=item.item_type,
                    format=fmt,
                    mode=mode,
                    title=f"{humanize_item_type(item.item_type)}: {skill.name or skill.skill_id}",
                    estimated_minutes=item.estimated_minutes,
                    priority_score=score.total_score,
                    scoring_factors=score,
                    rationale=build_rationale(score),
                    why_selected=build_why_selected(
                        score,
                        record,
                        skill,
                        planner_input.days_until_written,
                        planner_input.as_of,
                    ),
                )
            )
            remaining -= item.estimated_minutes
            per_skill[item.skill_id] = per_skill.get(item.skill_id, 0) + 1

        plan.tasks = tasks
        plan.total_minutes = budget - remaining
        logger.info(
            "Generated plan for %s on %s: %d tasks, %d/%d minutes, phase=%s",
            planner_input.user_id,
            plan_date.isoformat(),
            len(tasks),
            plan.total_minutes,
            budget,
            phase.value,
        )
        return plan


def generate_daily_plan(planner_input: PlannerInput) -> DailyPlanOutput:
    """Build the ranked, explainable task list for one (user, day)."""
    return DailyPlanGenerator.generate(planner_input)
