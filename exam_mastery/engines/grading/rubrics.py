"""
Rubric dimensions and per-format grading vocabulary.
"""

from typing import Dict, List

from exam_mastery.schemas.grading import RubricDimension
from exam_mastery.schemas.mastery import ItemFormat

WRITTEN_RUBRIC_DIMENSIONS: List[RubricDimension] = [
    RubricDimension(category="issue_spotting", weight=0.25, description="Identification of legal issues"),
    RubricDimension(category="rule_accuracy", weight=0.25, description="Correct statement of legal rules with citations"),
    RubricDimension(category="application", weight=0.25, description="Application of rules to facts (IRAC)"),
    RubricDimension(category="remedies", weight=0.10, description="Identification of appropriate remedies/prayers"),
    RubricDimension(category="structure", weight=0.10, description="Logical organization and clarity"),
    RubricDimension(category="authority_use", weight=0.05, description="Proper citation of authorities"),
]

ORAL_RUBRIC_DIMENSIONS: List[RubricDimension] = [
    RubricDimension(category="issue_identification", weight=0.20, description="Identification of legal issues"),
    RubricDimension(category="rule_accuracy", weight=0.20, description="Correct statement of law"),
    RubricDimension(category="procedure_sequencing", weight=0.20, description="Correct procedural steps"),
    RubricDimension(category="clarity_confidence", weight=0.20, description="Clear, confident delivery"),
    RubricDimension(category="followup_handling", weight=0.20, description="Response to follow-up questions"),
]

DRAFTING_RUBRIC_DIMENSIONS: List[RubricDimension] = [
    RubricDimension(category="form_compliance", weight=0.20, description="Correct document format"),
    RubricDimension(category="clause_completeness", weight=0.25, description="All required clauses present"),
    RubricDimension(category="parties_capacity", weight=0.15, description="Correct party descriptions and capacity"),
    RubricDimension(category="execution", weight=0.15, description="Proper execution/attestation clauses"),
    RubricDimension(category="internal_consistency", weight=0.15, description="No contradictions within document"),
    RubricDimension(category="local_conventions", weight=0.10, description="Jurisdiction-specific drafting requirements"),
]

_RUBRICS: Dict[ItemFormat, List[RubricDimension]] = {
    ItemFormat.WRITTEN: WRITTEN_RUBRIC_DIMENSIONS,
    ItemFormat.ORAL: ORAL_RUBRIC_DIMENSIONS,
    ItemFormat.DRAFTING: DRAFTING_RUBRIC_DIMENSIONS,
}

ERROR_TAG_CODES: Dict[ItemFormat, Dict[str, str]] = {
    ItemFormat.WRITTEN: {
        "MISSED_ISSUE": "Failed to identify a legal issue",
        "WRONG_RULE": "Incorrect statement of law",
        "NO_CITATION": "Failed to cite relevant authority",
        "WRONG_CITATION": "Incorrect citation",
        "POOR_APPLICATION": "Weak application of rule to facts",
        "WRONG_RELIEF": "Incorrect remedy identified",
        "STRUCTURE_ISSUE": "Poor organization",
        "INCOMPLETE": "Answered only partially",
    },
    ItemFormat.ORAL: {
        "WRONG_PROCEDURE": "Incorrect procedural step",
        "CONFIDENCE_MISMATCH": "Stated wrongly with confidence",
        "HESITATION": "Excessive hesitation indicating uncertainty",
        "CONTRADICTION": "Self-contradicting statements",
        "NO_GREETING": "Failed to address the court properly",
        "TIME_OVERRUN": "Exceeded reasonable time",
        "FOLLOWUP_FAIL": "Could not handle follow-up question",
    },
    ItemFormat.DRAFTING: {
        "WRONG_FORMAT": "Incorrect document format",
        "MISSING_CLAUSE": "Required clause missing",
        "WRONG_PARTY": "Party incorrectly described",
        "EXECUTION_ERROR": "Execution clause incorrect",
        "INCONSISTENT": "Internal contradiction",
        "CONVENTION_MISS": "Does not follow local drafting conventions",
        "STAMP_DUTY_MISS": "Stamp duty not addressed",
        "ATTESTATION_MISS": "Attestation clause missing or wrong",
    },
}

GRADING_FAILED_TAG = "GRADING_FAILED"
WRONG_ANSWER_TAG = "WRONG_ANSWER"


def rubric_for(fmt: ItemFormat) -> List[RubricDimension]:
    """Default rubric for a format; written is used for anything without its own."""
    return _RUBRICS.get(ItemFormat(fmt), WRITTEN_RUBRIC_DIMENSIONS)


def error_codes_for(fmt: ItemFormat) -> Dict[str, str]:
    return ERROR_TAG_CODES.get(ItemFormat(fmt), ERROR_TAG_CODES[ItemFormat.WRITTEN])
