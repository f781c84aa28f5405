"""
Grading prompt assembly.

Prompts are built from explicit section builders. A section whose backing
data is missing is never emitted, so the generation collaborator never sees
an empty heading or an unfilled placeholder.
"""

from typing import Dict, List, Optional

from exam_mastery.engines.grading.rubrics import error_codes_for, rubric_for
from exam_mastery.schemas.grading import GradingRequest, RubricDimension
from exam_mastery.schemas.mastery import ItemFormat

_PERSONAS: Dict[ItemFormat, str] = {
    ItemFormat.WRITTEN: (
        "You are an expert bar exam grader. Grade the following written response "
        "STRICTLY according to the rubric provided."
    ),
    ItemFormat.ORAL: (
        "You are an expert bar exam oral assessor. Grade the following oral response "
        "transcript STRICTLY according to the rubric."
    ),
    ItemFormat.DRAFTING: (
        "You are an expert legal drafting assessor. Grade the following draft document "
        "STRICTLY according to the rubric and local drafting conventions."
    ),
}

_PRINCIPLES: Dict[ItemFormat, List[str]] = {
    ItemFormat.WRITTEN: [
        "Every point of feedback MUST reference a specific rubric criterion, lecture excerpt, or vetted authority",
        "Do NOT invent case citations - only cite authorities provided in context",
        "Be precise about what is missing and what is incorrect",
        "Identify specific error patterns (issue spotting gaps, rule errors, application failures)",
    ],
    ItemFormat.ORAL: [
        "Assess clarity, confidence calibration, and procedural accuracy",
        "Note any contradictions or hesitations that indicate uncertainty",
        "Evaluate handling of follow-up questions if present",
        "Mark specific passages where issues occur",
    ],
    ItemFormat.DRAFTING: [
        "Check form compliance (correct document type, structure)",
        "Verify all required clauses are present and correctly formulated",
        "Check parties are properly described with capacity",
        "Verify execution/attestation clauses where applicable",
        "Check internal consistency (no contradicting clauses)",
    ],
}

_TASK_LABELS = {
    ItemFormat.WRITTEN: ("QUESTION", "ADDITIONAL CONTEXT", "STUDENT RESPONSE"),
    ItemFormat.ORAL: ("QUESTION/SCENARIO", "ADDITIONAL CONTEXT", "STUDENT TRANSCRIPT"),
    ItemFormat.DRAFTING: ("DRAFTING TASK", "CONTEXT/FACTS", "STUDENT DRAFT"),
}

OUTPUT_SCHEMA_INSTRUCTIONS = """Respond with ONLY valid JSON matching this exact schema:
{
  "scoreNorm": <0-1 float>,
  "scoreRaw": <number>,
  "maxScore": <number>,
  "rubricBreakdown": [
    {
      "category": "<category name>",
      "score": <number>,
      "maxScore": <number>,
      "feedback": "<specific feedback with evidence>",
      "missingPoints": ["<missing point>"]
    }
  ],
  "missingPoints": ["<key points not addressed>"],
  "errorTags": ["<error code>"],
  "nextDrills": ["<skill area needing practice>"],
  "modelOutline": "<brief model answer outline>",
  "evidenceRequests": ["<sources used in grading>"]
}"""

RETRY_INSTRUCTION = (
    "IMPORTANT: Your previous response was not valid JSON. Respond with ONLY a valid "
    "JSON object, no markdown, no explanations, no code blocks. Start with { and end with }."
)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def section(title: str, body: Optional[str]) -> Optional[str]:
    """A titled section, or None when there is nothing to put under the title."""
    if not _has_text(body):
        return None
    return f"{title}:\n{body.strip()}"


def rubric_section(dimensions: List[RubricDimension]) -> Optional[str]:
    lines = [f"{d.category} ({d.weight * 100:.0f}%): {d.description}" for d in dimensions]
    return section("RUBRIC DIMENSIONS", "\n".join(lines))


def principles_section(fmt: ItemFormat) -> Optional[str]:
    principles = _PRINCIPLES.get(fmt, _PRINCIPLES[ItemFormat.WRITTEN])
    return section("GRADING PRINCIPLES", "\n".join(f"{i}. {p}" for i, p in enumerate(principles, 1)))


def key_points_section(key_points: List[str]) -> Optional[str]:
    points = [p.strip() for p in key_points if _has_text(p)]
    return section("KEY POINTS EXPECTED", "\n".join(f"{i}. {p}" for i, p in enumerate(points, 1)))


def authorities_section(request: GradingRequest) -> Optional[str]:
    lines = []
    for auth in request.authorities:
        if not _has_text(auth.citation):
            continue
        lines.append(f"- {auth.citation}: {auth.summary}" if _has_text(auth.summary) else f"- {auth.citation}")
    return section("RELEVANT AUTHORITIES (only cite these)", "\n".join(lines))


def lecture_section(request: GradingRequest) -> Optional[str]:
    chunks = []
    for excerpt in request.lecture_excerpts:
        if not _has_text(excerpt.content):
            continue
        source = excerpt.lecture_title
        if _has_text(excerpt.timestamp):
            source = f"{source}, {excerpt.timestamp}"
        chunks.append(f"[{source}]: {excerpt.content.strip()}")
    return section("RELEVANT LECTURE EXCERPTS", "\n\n".join(chunks))


def time_taken_section(time_taken_sec: Optional[int]) -> Optional[str]:
    if not time_taken_sec:
        return None
    return f"TIME TAKEN: {time_taken_sec} seconds"


def error_codes_section(fmt: ItemFormat) -> Optional[str]:
    codes = error_codes_for(fmt)
    return section("ERROR TAG CODES TO USE", "\n".join(f"- {code}: {desc}" for code, desc in codes.items()))


def build_grading_prompt(request: GradingRequest) -> str:
    """Render the full grading prompt for a written, oral or drafting response."""
    fmt = ItemFormat(request.format)
    if fmt not in _PERSONAS:
        raise ValueError(f"No grading prompt for format {fmt.value}; MCQ is graded directly")

    task_label, context_label, response_label = _TASK_LABELS[fmt]
    dimensions = request.rubric or rubric_for(fmt)

    sections = [
        _PERSONAS[fmt],
        principles_section(fmt),
        rubric_section(dimensions),
        section(task_label, request.prompt),
        section(context_label, request.context),
        section("MODEL ANSWER (for reference)", request.model_answer),
        key_points_section(request.key_points),
        authorities_section(request),
        lecture_section(request),
        section(response_label, request.response),
        time_taken_section(request.time_taken_sec),
        OUTPUT_SCHEMA_INSTRUCTIONS,
        error_codes_section(fmt),
    ]
    return "\n\n".join(s for s in sections if s)


def with_retry_instruction(prompt: str) -> str:
    """Prompt for a retry after an unparseable or invalid response."""
    return f"{prompt}\n\n{RETRY_INSTRUCTION}"
