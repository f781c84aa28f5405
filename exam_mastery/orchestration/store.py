"""
Persisted-state collaborator.

The core never owns storage; callers plug in a MasteryStore. The in-memory
implementation backs tests and single-process embedding.
"""

from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from exam_mastery.exceptions import InputError
from exam_mastery.schemas.mastery import Attempt, MasteryRecord, Skill
from exam_mastery.schemas.verification import GateVerification


class MasteryStore(Protocol):
    """Async persistence surface used by the attempt pipeline."""

    async def get_skills(self) -> Dict[str, Skill]:
        ...

    async def get_mastery(self, user_id: str, skill_id: str) -> Optional[MasteryRecord]:
        ...

    async def save_mastery(self, record: MasteryRecord) -> None:
        ...

    async def list_mastery(self, user_id: str) -> List[MasteryRecord]:
        ...

    async def append_attempt(self, attempt: Attempt) -> None:
        ...

    async def list_attempts(self, user_id: str, skill_id: Optional[str] = None) -> List[Attempt]:
        ...

    async def get_verification(self, user_id: str, skill_id: str) -> Optional[GateVerification]:
        ...

    async def save_verification(self, verification: GateVerification) -> None:
        ...


class InMemoryMasteryStore:
    """Dict-backed MasteryStore. Attempts are append-only."""

    def __init__(self, skills: Iterable[Skill] = ()):
        self._skills: Dict[str, Skill] = {s.skill_id: s for s in skills}
        self._mastery: Dict[Tuple[str, str], MasteryRecord] = {}
        self._attempts: List[Attempt] = []
        self._attempt_ids: set = set()
        self._verifications: Dict[Tuple[str, str], GateVerification] = {}

    def add_skill(self, skill: Skill) -> None:
        self._skills[skill.skill_id] = skill

    async def get_skills(self) -> Dict[str, Skill]:
        return dict(self._skills)

    async def get_mastery(self, user_id: str, skill_id: str) -> Optional[MasteryRecord]:
        return self._mastery.get((user_id, skill_id))

    async def save_mastery(self, record: MasteryRecord) -> None:
        self._mastery[(record.user_id, record.skill_id)] = record

    async def list_mastery(self, user_id: str) -> List[MasteryRecord]:
        return [r for (uid, _), r in sorted(self._mastery.items()) if uid == user_id]

    async def append_attempt(self, attempt: Attempt) -> None:
        if attempt.attempt_id in self._attempt_ids:
            raise InputError(f"Attempt {attempt.attempt_id} already recorded", field="attempt_id")
        self._attempt_ids.add(attempt.attempt_id)
        self._attempts.append(attempt)

    async def list_attempts(self, user_id: str, skill_id: Optional[str] = None) -> List[Attempt]:
        return [
            a
            for a in self._attempts
            if a.user_id == user_id and (skill_id is None or a.tests_skill(skill_id))
        ]

    async def get_verification(self, user_id: str, skill_id: str) -> Optional[GateVerification]:
        return self._verifications.get((user_id, skill_id))

    async def save_verification(self, verification: GateVerification) -> None:
        self._verifications[(verification.user_id, verification.skill_id)] = verification
