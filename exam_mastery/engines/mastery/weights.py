"""
Fixed evidence weights for the mastery update rule.

Higher-fidelity formats and exam-like conditions move mastery further per
attempt; easy items move it less.
"""

from typing import Dict

from exam_mastery.schemas.mastery import AttemptMode, ItemFormat

FORMAT_WEIGHTS: Dict[ItemFormat, float] = {
    ItemFormat.ORAL: 1.35,
    ItemFormat.DRAFTING: 1.25,
    ItemFormat.WRITTEN: 1.15,
    ItemFormat.MCQ: 0.75,
    ItemFormat.FLASHCARD: 0.65,
}

MODE_WEIGHTS: Dict[AttemptMode, float] = {
    AttemptMode.TIMED: 1.25,
    AttemptMode.EXAM_SIM: 1.25,
    AttemptMode.PRACTICE: 1.0,
}

# difficulty 1 (easiest) .. 5 (hardest)
DIFFICULTY_FACTORS: Dict[int, float] = {
    1: 0.6,
    2: 0.8,
    3: 1.0,
    4: 1.2,
    5: 1.4,
}

PASS_THRESHOLD = 0.6
LEARNING_RATE = 0.15
MAX_DELTA_POSITIVE = 0.10
MAX_DELTA_NEGATIVE = -0.12

STABILITY_GROWTH = 0.10
STABILITY_DECAY = 0.15
MIN_STABILITY = 0.3
MAX_STABILITY = 2.0
DEFAULT_STABILITY = 1.0


def format_weight(fmt: ItemFormat) -> float:
    return FORMAT_WEIGHTS[ItemFormat(fmt)]


def mode_weight(mode: AttemptMode) -> float:
    return MODE_WEIGHTS[AttemptMode(mode)]


def difficulty_factor(difficulty: int) -> float:
    return DIFFICULTY_FACTORS[difficulty]
