"""
Daily plan service - one stored plan per (user, day).

Repeated requests return the stored plan; regenerate=True replaces it.
"""

import threading
from datetime import date
from typing import Dict, Optional, Tuple

from exam_mastery.engines.planner.daily_planner import generate_daily_plan
from exam_mastery.engines.planner.scoring import as_utc
from exam_mastery.logging_config import get_logger
from exam_mastery.schemas.planner import DailyPlanOutput, PlannerInput

logger = get_logger(__name__)


class DailyPlanService:
    """Idempotent front for the plan generator."""

    def __init__(self):
        self._plans: Dict[Tuple[str, date], DailyPlanOutput] = {}
        self._lock = threading.Lock()

    def get_plan(self, user_id: str, plan_date: date) -> Optional[DailyPlanOutput]:
        with self._lock:
            return self._plans.get((user_id, plan_date))

    def get_or_generate(self, planner_input: PlannerInput, regenerate: bool = False) -> DailyPlanOutput:
        """
        Return the stored plan for (user, day of as_of), generating it once.

        Generation runs under the service lock so concurrent requests for the
        same day produce a single plan.
        """
        key = (planner_input.user_id, as_utc(planner_input.as_of).date())
        with self._lock:
            existing = self._plans.get(key)
            if existing is not None and not regenerate:
                return existing
            plan = generate_daily_plan(planner_input)
            self._plans[key] = plan
        if existing is not None:
            logger.info(
                "Plan for %s on %s regenerated (fingerprint %s -> %s)",
                key[0],
                key[1].isoformat(),
                existing.input_fingerprint[:12],
                plan.input_fingerprint[:12],
            )
        return plan
