"""
Attempt Pipeline - grade, record, update mastery, check gates.

Per submitted attempt:
1. Grade (MCQ deterministically, other formats through the grading service)
2. Append the immutable attempt to the store
3. Update every tested skill's MasteryRecord under a per-(user, skill) lock
4. For timed/exam_sim attempts, run the gate and persist a verification
   on first pass
5. Summarise the outcome for the caller
"""

import asyncio
import math
import weakref
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from exam_mastery.engines.grading.grading_service import GradingService
from exam_mastery.engines.grading.mcq import grade_mcq
from exam_mastery.engines.mastery.error_signatures import top_error_tags
from exam_mastery.engines.mastery.gate_verifier import REQUIRED_TIMED_PASSES, GateVerifier
from exam_mastery.engines.mastery.update_engine import MasteryUpdateEngine
from exam_mastery.engines.mastery.weights import PASS_THRESHOLD
from exam_mastery.exceptions import InputError
from exam_mastery.logging_config import bind_correlation_id, get_logger
from exam_mastery.orchestration.gate_state import current_status, verification_from_gate
from exam_mastery.orchestration.store import MasteryStore
from exam_mastery.schemas.grading import GradingOutput, GradingRequest, McqOption
from exam_mastery.schemas.mastery import (
    TIMED_MODES,
    Attempt,
    AttemptMode,
    ItemFormat,
    MasteryRecord,
    MasteryStateUpdate,
    SkillCoverage,
)
from exam_mastery.schemas.verification import GateAttempt, GateCheckResult, GateInput, GateStatus

logger = get_logger(__name__)

RECOMMEND_BELOW_P_MASTERY = 0.7


class AttemptSubmission(BaseModel):
    """A completed attempt awaiting grading."""

    attempt_id: str
    user_id: str
    item_id: str
    skills: List[SkillCoverage]
    format: ItemFormat
    mode: AttemptMode = AttemptMode.PRACTICE
    difficulty: int = 3
    time_taken_sec: int = 0
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Written / oral / drafting
    grading_request: Optional[GradingRequest] = None

    # MCQ
    selected_option: Optional[str] = None
    options: List[McqOption] = Field(default_factory=list)
    correct_option: Optional[str] = None


class AttemptOutcome(BaseModel):
    """What happened to one attempt."""

    attempt: Attempt
    grading: GradingOutput
    updates: List[MasteryStateUpdate]
    gate_results: List[GateCheckResult] = Field(default_factory=list)
    newly_verified: List[str] = Field(default_factory=list)
    passed: bool
    score_percent: int
    improvement_areas: List[str] = Field(default_factory=list)
    next_recommended_skills: List[str] = Field(default_factory=list)
    degraded: bool = False


def improvement_areas(grading: GradingOutput) -> List[str]:
    """Rubric categories scored under the pass threshold."""
    return [
        line.category
        for line in grading.rubric_breakdown
        if line.max_score > 0 and line.score / line.max_score < PASS_THRESHOLD
    ]


class AttemptPipeline:
    """Processes submitted attempts against a MasteryStore."""

    def __init__(self, store: MasteryStore, grading_service: GradingService):
        self.store = store
        self.grading_service = grading_service
        self._inflight: Dict[str, asyncio.Task] = {}
        # Locks live only while a coroutine holds or awaits them
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, user_id: str, skill_id: str) -> asyncio.Lock:
        key = (user_id, skill_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def submit(self, submission: AttemptSubmission) -> AttemptOutcome:
        """
        Process one attempt. Concurrent submissions of the same attempt id
        share a single processing task.

        Raises:
            InputError: unknown skills, missing grading input, duplicate attempt
        """
        attempt_id = submission.attempt_id
        task = self._inflight.get(attempt_id)
        if task is None:
            task = asyncio.ensure_future(self._process(submission))
            self._inflight[attempt_id] = task
            task.add_done_callback(lambda _t: self._inflight.pop(attempt_id, None))
        else:
            logger.info("Attempt %s already in flight; awaiting shared result", attempt_id)
        return await asyncio.shield(task)

    async def _grade(self, submission: AttemptSubmission) -> GradingOutput:
        if submission.format == ItemFormat.MCQ:
            if submission.selected_option is None or not submission.options:
                raise InputError("MCQ attempt needs selected_option and options", field="selected_option")
            return grade_mcq(submission.selected_option, submission.options, submission.correct_option)
        if submission.grading_request is None:
            raise InputError(
                f"{submission.format.value} attempt needs a grading_request",
                field="grading_request",
            )
        return await self.grading_service.grade(submission.grading_request)

    async def _validate(self, submission: AttemptSubmission) -> None:
        if not submission.skills:
            raise InputError("attempt tests no skills", field="skills")
        catalog = await self.store.get_skills()
        seen = set()
        for coverage in submission.skills:
            if coverage.skill_id not in catalog:
                raise InputError(f"unknown skill id {coverage.skill_id!r}", field="skill_id")
            if coverage.skill_id in seen:
                raise InputError(f"skill id {coverage.skill_id!r} listed twice", field="skill_id")
            seen.add(coverage.skill_id)
            MasteryUpdateEngine.resolve_coverage_weight(coverage.coverage_weight)
        if not 1 <= submission.difficulty <= 5:
            raise InputError(f"difficulty {submission.difficulty} outside 1..5", field="difficulty")
        if submission.time_taken_sec < 0:
            raise InputError("time_taken_sec must not be negative", field="time_taken_sec")

    async def _process(self, submission: AttemptSubmission) -> AttemptOutcome:
        with bind_correlation_id(submission.attempt_id):
            await self._validate(submission)
            grading = await self._grade(submission)

            attempt = Attempt(
                attempt_id=submission.attempt_id,
                user_id=submission.user_id,
                item_id=submission.item_id,
                skills=tuple(submission.skills),
                format=submission.format,
                mode=submission.mode,
                score_norm=grading.score_norm,
                difficulty=submission.difficulty,
                time_taken_sec=submission.time_taken_sec,
                error_tags=tuple(grading.error_tags),
                submitted_at=submission.submitted_at,
            )
            await self.store.append_attempt(attempt)

            updates: List[MasteryStateUpdate] = []
            gate_results: List[GateCheckResult] = []
            newly_verified: List[str] = []
            facts = attempt.facts()

            for coverage in attempt.skills:
                async with self._lock(attempt.user_id, coverage.skill_id):
                    record = await self.store.get_mastery(attempt.user_id, coverage.skill_id)
                    if record is None:
                        record = MasteryRecord(user_id=attempt.user_id, skill_id=coverage.skill_id)

                    update = MasteryUpdateEngine.update_skill(
                        coverage.skill_id, record.state(), facts, coverage.coverage_weight
                    )
                    updates.append(update)
                    record = record.model_copy(
                        update={
                            "p_mastery": update.new_p_mastery,
                            "stability": update.new_stability,
                            "last_practiced_at": attempt.submitted_at,
                            "next_review_date": attempt.submitted_at
                            + timedelta(days=math.ceil(update.new_stability)),
                            "reps_count": record.reps_count + 1,
                        }
                    )

                    if attempt.mode in TIMED_MODES:
                        result = await self._run_gate(attempt.user_id, coverage.skill_id, record.p_mastery)
                        gate_results.append(result)
                        if result.is_verified:
                            record, is_new = await self._record_verification(
                                record, result, attempt.submitted_at
                            )
                            if is_new:
                                newly_verified.append(coverage.skill_id)

                    await self.store.save_mastery(record)

            outcome = AttemptOutcome(
                attempt=attempt,
                grading=grading,
                updates=updates,
                gate_results=gate_results,
                newly_verified=newly_verified,
                passed=grading.passed,
                score_percent=round(grading.score_norm * 100),
                improvement_areas=improvement_areas(grading),
                next_recommended_skills=[
                    u.skill_id for u in updates if u.new_p_mastery < RECOMMEND_BELOW_P_MASTERY
                ],
                degraded=grading.is_fallback,
            )
            logger.info(
                "Attempt %s processed: score=%d%% skills=%d verified=%s degraded=%s",
                attempt.attempt_id,
                outcome.score_percent,
                len(updates),
                newly_verified,
                outcome.degraded,
                extra={"user_id": attempt.user_id, "item_id": attempt.item_id},
            )
            return outcome

    async def _run_gate(self, user_id: str, skill_id: str, p_mastery: float) -> GateCheckResult:
        history = await self.store.list_attempts(user_id, skill_id)
        gate_attempts = [
            GateAttempt(
                attempt_id=a.attempt_id,
                score_norm=a.score_norm,
                submitted_at=a.submitted_at,
                mode=a.mode,
                error_tags=list(a.error_tags),
            )
            for a in history
            if a.mode in TIMED_MODES
        ]
        passes = GateVerifier.passing_attempts(gate_attempts)
        # Historical tags exclude the pass being judged
        before = passes[REQUIRED_TIMED_PASSES - 1].submitted_at if len(passes) >= REQUIRED_TIMED_PASSES else None
        gate_input = GateInput(
            skill_id=skill_id,
            p_mastery=p_mastery,
            timed_attempts=gate_attempts,
            top_error_tags=top_error_tags(history, skill_id, before=before),
        )
        return GateVerifier.check(gate_input)

    async def _record_verification(
        self,
        record: MasteryRecord,
        result: GateCheckResult,
        verified_at: datetime,
    ) -> Tuple[MasteryRecord, bool]:
        """Persist a verification unless one is already active. Returns (record, newly_verified)."""
        previous = await self.store.get_verification(record.user_id, record.skill_id)
        if current_status(previous) == GateStatus.VERIFIED:
            return record, False
        verification = verification_from_gate(record.user_id, result, previous, verified_at=verified_at)
        await self.store.save_verification(verification)
        return record.model_copy(update={"is_verified": True, "verified_at": verified_at}), True
