"""
Pytest fixtures for exam mastery tests.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import pytest

from exam_mastery.config import Settings
from exam_mastery.schemas.mastery import ItemFormat, Skill


T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def valid_grading_payload(score_norm: float = 0.8, error_tags: Optional[List[str]] = None) -> Dict[str, Any]:
    """A grading payload that passes strict validation."""
    return {
        "scoreNorm": score_norm,
        "scoreRaw": round(score_norm * 10, 2),
        "maxScore": 10,
        "rubricBreakdown": [
            {
                "category": "issue_spotting",
                "score": round(score_norm * 5, 2),
                "maxScore": 5,
                "feedback": "Identified the offer and acceptance issues.",
                "missingPoints": [],
            },
            {
                "category": "rule_accuracy",
                "score": 2,
                "maxScore": 5,
                "feedback": "Consideration rule stated without authority.",
                "missingPoints": ["Cite the leading case on consideration"],
            },
        ],
        "missingPoints": ["Remedies not discussed"],
        "errorTags": error_tags if error_tags is not None else ["NO_CITATION"],
        "nextDrills": ["consideration"],
        "modelOutline": "Offer, acceptance, consideration, intention.",
        "evidenceRequests": ["Lecture 3"],
    }


class ScriptedGenerationClient:
    """
    Generation client that replays a script.

    Each entry is a raw string, an Exception instance to raise, or the
    string "hang" to block until cancelled.
    """

    def __init__(self, script: List[Union[str, Exception]], delay: float = 0.0):
        self.script = list(script)
        self.delay = delay
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        entry = self.script[min(len(self.prompts), len(self.script)) - 1]
        if isinstance(entry, Exception):
            raise entry
        if entry == "hang":
            await asyncio.sleep(3600)
        return entry


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings() -> Settings:
    """Settings with fast retries and no API key."""
    return Settings(
        openai_api_key="",
        grading_max_attempts=3,
        grading_retry_delay_seconds=0.0,
        generation_timeout_seconds=1.0,
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def valid_grading_json() -> str:
    return json.dumps(valid_grading_payload())


@pytest.fixture
def skill_catalog() -> List[Skill]:
    """Five skills across two units."""
    return [
        Skill(skill_id="contract-formation", name="Contract Formation", unit_id="contracts",
              exam_weight=0.3, difficulty=3, formats=[ItemFormat.WRITTEN], is_core=True),
        Skill(skill_id="consideration", name="Consideration", unit_id="contracts",
              exam_weight=0.2, difficulty=2, formats=[ItemFormat.MCQ, ItemFormat.WRITTEN]),
        Skill(skill_id="misrepresentation", name="Misrepresentation", unit_id="contracts",
              exam_weight=0.15, difficulty=4, formats=[ItemFormat.WRITTEN]),
        Skill(skill_id="bail-application", name="Bail Application", unit_id="criminal-procedure",
              exam_weight=0.25, difficulty=4, formats=[ItemFormat.ORAL], is_core=True),
        Skill(skill_id="affidavit-drafting", name="Affidavit Drafting", unit_id="civil-procedure",
              exam_weight=0.1, difficulty=3, formats=[ItemFormat.DRAFTING]),
    ]


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def grading_payload():
    """Factory for valid grading payload dicts."""
    return valid_grading_payload


@pytest.fixture
def scripted_client():
    """Factory for ScriptedGenerationClient."""
    return ScriptedGenerationClient
