"""
Typed errors raised by the mastery core.

InputError is raised synchronously for bad caller input and is never retried.
Generation errors are internal to grading: they drive retries and end in the
fallback result, never reaching the caller.
"""

from dataclasses import dataclass
from typing import List, Optional


class InputError(ValueError):
    """Out-of-range numeric field or unknown skill/item id."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class GenerationError(Exception):
    """Base class for failures turning generated text into a grading result."""


class GenerationParseError(GenerationError):
    """No JSON object could be extracted from the generated text."""


@dataclass(frozen=True)
class FieldIssue:
    """A single schema violation: dotted path plus message."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class GenerationValidationError(GenerationError):
    """Parsed JSON violates the grading schema. Carries every violation."""

    def __init__(self, issues: List[FieldIssue]):
        self.issues = list(issues)
        joined = "; ".join(str(i) for i in self.issues)
        super().__init__(f"Grading output validation failed ({len(self.issues)} issues): {joined}")

    @property
    def paths(self) -> List[str]:
        return [i.path for i in self.issues]


class InvalidGateTransition(ValueError):
    """Illegal move in the skill verification lifecycle."""
