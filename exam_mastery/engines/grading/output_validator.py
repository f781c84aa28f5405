"""
Grading Output Validator - turns generated text into a strict GradingOutput.

Steps:
1. Extraction: fenced block content if present, else the first balanced
   top-level JSON object in the text.
2. Validation: hand-rolled schema check that collects every violated field
   before failing, so one error report describes the whole payload.
3. Fallback: a conservative, visibly flagged result for when no valid
   output could be obtained.
"""

import json
import math
import re
from itertools import chain
from typing import Any, Dict, Iterator, List, Optional, Tuple

from exam_mastery.engines.grading.rubrics import GRADING_FAILED_TAG, rubric_for
from exam_mastery.exceptions import (
    FieldIssue,
    GenerationError,
    GenerationParseError,
    GenerationValidationError,
)
from exam_mastery.logging_config import get_logger
from exam_mastery.schemas.grading import GradingOutput, RubricDimension, RubricLine
from exam_mastery.schemas.mastery import ItemFormat

logger = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)

FALLBACK_SCORE_NORM = 0.5
FALLBACK_FEEDBACK = "Automatic grading failed - needs manual review"

_STRING_LIST_FIELDS = ("errorTags", "nextDrills", "evidenceRequests")


def _balanced_objects(text: str) -> Iterator[str]:
    """
    Yield the outermost complete {...} spans in order, honouring JSON string
    escapes. Single pass: an unclosed brace does not hide complete objects
    nested after it.
    """
    first = text.find("{")
    if first == -1:
        return
    opened: List[int] = []
    closed: List[Tuple[int, int]] = []
    in_string = False
    escaped = False
    for i in range(first, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            opened.append(i)
        elif ch == "}" and opened:
            start = opened.pop()
            while closed and closed[-1][0] > start:
                closed.pop()
            if opened:
                closed.append((start, i))
            else:
                yield text[start:i + 1]
    for start, end in closed:
        yield text[start:end + 1]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class GradingOutputValidator:
    """Extracts and strictly validates grading JSON."""

    @classmethod
    def extract_json(cls, text: str) -> Dict[str, Any]:
        """
        Parse the grading object out of raw generated text.

        Raises:
            GenerationParseError: no JSON object could be recovered
        """
        if not isinstance(text, str) or not text.strip():
            raise GenerationParseError("Empty response from generation collaborator")

        candidates: Iterator[str] = _balanced_objects(text)
        fence = _FENCE_PATTERN.search(text)
        if fence:
            body = fence.group(1).strip()
            candidates = chain([body], _balanced_objects(body), candidates)

        last_error: Optional[str] = None
        for candidate in candidates:
            try:
                parsed = json.loads(candidate)
            except (ValueError, RecursionError) as exc:
                # ValueError covers JSONDecodeError and oversized integer literals
                last_error = f"{type(exc).__name__}: {exc}"
                continue
            if isinstance(parsed, dict):
                return parsed
            last_error = f"expected a JSON object, got {type(parsed).__name__}"

        if last_error is None:
            last_error = "no complete {...} object" if "{" in text else "no braces present"
        raise GenerationParseError(f"No JSON object found in response: {last_error}")

    @classmethod
    def _number(
        cls,
        payload: Dict[str, Any],
        key: str,
        issues: List[FieldIssue],
        path: str,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
    ) -> Optional[float]:
        if key not in payload:
            issues.append(FieldIssue(path, "is required"))
            return None
        value = payload[key]
        if not _is_number(value):
            issues.append(FieldIssue(path, f"must be a number, got {type(value).__name__}"))
            return None
        try:
            finite = math.isfinite(value)
        except OverflowError:
            issues.append(FieldIssue(path, "is out of range"))
            return None
        if not finite:
            issues.append(FieldIssue(path, "must be finite"))
            return None
        ok = True
        if minimum is not None and value < minimum:
            issues.append(FieldIssue(path, f"must be >= {minimum:g}, got {value}"))
            ok = False
        if maximum is not None and value > maximum:
            issues.append(FieldIssue(path, f"must be <= {maximum:g}, got {value}"))
            ok = False
        return float(value) if ok else None

    @classmethod
    def _string(
        cls,
        payload: Dict[str, Any],
        key: str,
        issues: List[FieldIssue],
        path: str,
        non_empty: bool = False,
    ) -> Optional[str]:
        if key not in payload:
            issues.append(FieldIssue(path, "is required"))
            return None
        value = payload[key]
        if not isinstance(value, str):
            issues.append(FieldIssue(path, f"must be a string, got {type(value).__name__}"))
            return None
        if non_empty and not value.strip():
            issues.append(FieldIssue(path, "must not be empty"))
            return None
        return value

    @classmethod
    def _string_list(
        cls,
        payload: Dict[str, Any],
        key: str,
        issues: List[FieldIssue],
        path: str,
        required: bool = True,
    ) -> List[str]:
        if key not in payload:
            if required:
                issues.append(FieldIssue(path, "is required"))
            return []
        value = payload[key]
        if not isinstance(value, list):
            issues.append(FieldIssue(path, f"must be an array of strings, got {type(value).__name__}"))
            return []
        result = []
        for i, entry in enumerate(value):
            if isinstance(entry, str):
                result.append(entry)
            else:
                issues.append(FieldIssue(f"{path}[{i}]", f"must be a string, got {type(entry).__name__}"))
        return result

    @classmethod
    def _rubric_line(cls, entry: Any, issues: List[FieldIssue], path: str) -> Optional[RubricLine]:
        if not isinstance(entry, dict):
            issues.append(FieldIssue(path, f"must be an object, got {type(entry).__name__}"))
            return None
        before = len(issues)
        category = cls._string(entry, "category", issues, f"{path}.category", non_empty=True)
        score = cls._number(entry, "score", issues, f"{path}.score", minimum=0)
        max_score = cls._number(entry, "maxScore", issues, f"{path}.maxScore", minimum=0)
        feedback = cls._string(entry, "feedback", issues, f"{path}.feedback")
        missing = cls._string_list(entry, "missingPoints", issues, f"{path}.missingPoints", required=False)
        if score is not None and max_score is not None and score > max_score:
            issues.append(FieldIssue(f"{path}.score", f"must not exceed maxScore ({score:g} > {max_score:g})"))
        if len(issues) > before:
            return None
        return RubricLine(
            category=category,
            score=score,
            max_score=max_score,
            feedback=feedback,
            missing_points=missing,
        )

    @classmethod
    def validate(cls, payload: Any) -> GradingOutput:
        """
        Validate a parsed grading payload.

        Raises:
            GenerationValidationError: with every violated field, not just the first
        """
        if not isinstance(payload, dict):
            raise GenerationValidationError([FieldIssue("$", "must be a JSON object")])

        issues: List[FieldIssue] = []
        score_norm = cls._number(payload, "scoreNorm", issues, "scoreNorm", minimum=0, maximum=1)
        score_raw = cls._number(payload, "scoreRaw", issues, "scoreRaw", minimum=0)
        max_score = cls._number(payload, "maxScore", issues, "maxScore", minimum=0)
        if score_raw is not None and max_score is not None and score_raw > max_score:
            issues.append(FieldIssue("scoreRaw", f"must not exceed maxScore ({score_raw:g} > {max_score:g})"))

        rubric_lines: List[RubricLine] = []
        breakdown = payload.get("rubricBreakdown")
        if "rubricBreakdown" not in payload:
            issues.append(FieldIssue("rubricBreakdown", "is required"))
        elif not isinstance(breakdown, list):
            issues.append(FieldIssue("rubricBreakdown", f"must be an array, got {type(breakdown).__name__}"))
        elif not breakdown:
            issues.append(FieldIssue("rubricBreakdown", "must contain at least one entry"))
        else:
            for i, entry in enumerate(breakdown):
                line = cls._rubric_line(entry, issues, f"rubricBreakdown[{i}]")
                if line is not None:
                    rubric_lines.append(line)

        lists = {key: cls._string_list(payload, key, issues, key) for key in _STRING_LIST_FIELDS}
        missing_points = cls._string_list(payload, "missingPoints", issues, "missingPoints", required=False)
        model_outline = cls._string(payload, "modelOutline", issues, "modelOutline")

        if issues:
            raise GenerationValidationError(issues)

        return GradingOutput(
            score_norm=score_norm,
            score_raw=score_raw,
            max_score=max_score,
            rubric_breakdown=rubric_lines,
            missing_points=missing_points,
            error_tags=lists["errorTags"],
            next_drills=lists["nextDrills"],
            model_outline=model_outline,
            evidence_requests=lists["evidenceRequests"],
        )

    @classmethod
    def parse(cls, text: str) -> GradingOutput:
        """Extract then validate. Raises GenerationError subclasses."""
        return cls.validate(cls.extract_json(text))


def build_fallback_output(
    fmt: ItemFormat = ItemFormat.WRITTEN,
    rubric: Optional[List[RubricDimension]] = None,
    reason: Optional[str] = None,
    attempts: int = 0,
) -> GradingOutput:
    """
    Conservative result used when no valid grading could be obtained.

    Every expected rubric dimension is scored at 50% of its max and the
    result is flagged for manual review.
    """
    dimensions = rubric or rubric_for(fmt)
    lines = [
        RubricLine(
            category=d.category,
            score=d.max_score * 0.5,
            max_score=d.max_score,
            feedback=FALLBACK_FEEDBACK,
        )
        for d in dimensions
    ]
    return GradingOutput(
        score_norm=FALLBACK_SCORE_NORM,
        score_raw=sum(line.score for line in lines),
        max_score=sum(line.max_score for line in lines),
        rubric_breakdown=lines,
        missing_points=[],
        error_tags=[GRADING_FAILED_TAG],
        next_drills=[],
        model_outline="",
        evidence_requests=[],
        is_fallback=True,
        needs_manual_review=True,
        generation_attempts=attempts,
        failure_reason=reason,
    )


def validate_grading_output(
    raw_text: str,
    fmt: ItemFormat = ItemFormat.WRITTEN,
    rubric: Optional[List[RubricDimension]] = None,
) -> GradingOutput:
    """
    Validate one generated grading response.

    Never raises: invalid text yields the flagged fallback result.
    """
    try:
        output = GradingOutputValidator.parse(raw_text)
    except GenerationError as exc:
        logger.warning(
            "Grading output rejected, returning fallback: %s",
            exc,
            extra={"fallback": True, "format": ItemFormat(fmt).value},
        )
        return build_fallback_output(fmt, rubric, reason=str(exc), attempts=1)
    return output.model_copy(update={"generation_attempts": 1})
