"""Grading prompt construction."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from potd.grading.rubric import RubricTable
from potd.settings import settings

DEFAULT_QUESTION_TEXT = "Mathematical proof/explanation question"
DEFAULT_RUBRIC_TEXT = "Award points based on: correctness (4pts), clarity (3pts), completeness (3pts)"


@dataclass(frozen=True)
class PromptTemplate:
    """Wording of the grading prompt; the pipeline around it never changes."""

    persona: str = (
        "You are a formal, concise math grader for 10th grade students. "
        "Grade the following submission holistically."
    )
    instructions: tuple[str, ...] = (
        "Be formal but supportive",
        "Keep feedback concise (2-3 sentences max)",
        "Award partial credit where appropriate",
        "Focus on mathematical correctness and logical flow",
    )
    total_points: int = 10
    default_question: str = DEFAULT_QUESTION_TEXT
    default_rubric: str = DEFAULT_RUBRIC_TEXT


DEFAULT_TEMPLATE = PromptTemplate()


def configured_template() -> PromptTemplate:
    if settings.grading_persona:
        return replace(DEFAULT_TEMPLATE, persona=settings.grading_persona)
    return DEFAULT_TEMPLATE


def render_rubric(tables: Sequence[RubricTable]) -> str:
    text = ""
    for table in tables:
        if table.title:
            text += f"\n### {table.title}\n"
        if not table.is_tabular:
            continue
        columns = table.columns or []
        text += " | ".join(columns) + "\n"
        text += " | ".join("---" for _ in columns) + "\n"
        for row in table.rows or []:
            text += " | ".join(row.cells_for(len(columns))) + "\n"
    return text


def build_prompt(
    question_text: str | None,
    student_answer: str,
    rubric_tables: Sequence[RubricTable] | None,
    template: PromptTemplate = DEFAULT_TEMPLATE,
) -> str:
    rubric_text = render_rubric(rubric_tables or [])
    instructions = "\n".join(f"- {line}" for line in template.instructions)
    return (
        f"{template.persona}\n"
        "\n"
        "## QUESTION\n"
        f"{question_text or template.default_question}\n"
        "\n"
        f"## RUBRIC (Total: {template.total_points} points)\n"
        f"{rubric_text or template.default_rubric}\n"
        "\n"
        "## STUDENT SUBMISSION\n"
        f"{student_answer}\n"
        "\n"
        "## INSTRUCTIONS\n"
        f"{instructions}\n"
        "\n"
        "Respond with ONLY valid JSON in this exact format:\n"
        "{\n"
        f'    "score": <0-{template.total_points}>,\n'
        '    "feedback": "<brief feedback>",\n'
        '    "confidence": "<low|medium|high>",\n'
        '    "rubricBreakdown": {"<criterion>": <points awarded>}\n'
        "}\n"
        "rubricBreakdown is optional. Do not include any text outside the JSON object."
    )
