"""Request-level grading: validate, prompt, call the model, normalize."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

from potd.ai.gemini import ModelClient, get_model_client
from potd.grading.base import (
    GradingConfigurationError,
    GradingRequest,
    GradingResult,
    SubmissionValidationError,
)
from potd.grading.normalizer import parse_grading_response
from potd.grading.prompt import PromptTemplate, build_prompt, configured_template

logger = logging.getLogger(__name__)

MIN_ANSWER_LENGTH = 10
INVALID_SUBMISSION_MESSAGE = "Invalid submission: Answer too short or missing"
MISSING_API_KEY_MESSAGE = "Server configuration error: Missing API key"

LATEX_DOCUMENT_MARKER = "\\documentclass"

ClientFactory = Callable[[str], ModelClient]


@dataclass
class GradingOutcome:
    result: GradingResult
    model_used: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "score": self.result.score,
            "feedback": self.result.feedback,
            "confidence": self.result.confidence.value,
            "rubricBreakdown": self.result.rubric_breakdown,
            "model": self.model_used,
        }


def resolve_api_key() -> str | None:
    api_key = os.getenv("GEMINI_API_KEY", "").strip()
    return api_key or None


def wrap_latex_document(feedback: str) -> str:
    if LATEX_DOCUMENT_MARKER in feedback:
        return feedback
    return (
        "\\documentclass{article}\n"
        "\\usepackage{amsmath}\n"
        "\\begin{document}\n"
        "\n"
        f"{feedback}\n"
        "\n"
        "\\end{document}"
    )


def validate_request(request: GradingRequest) -> str:
    answer = request.student_answer
    if not isinstance(answer, str) or len(answer.strip()) < MIN_ANSWER_LENGTH:
        raise SubmissionValidationError(INVALID_SUBMISSION_MESSAGE)
    return answer


def grade_submission(
    request: GradingRequest,
    *,
    api_key: str | None = None,
    client_factory: ClientFactory | None = None,
    template: PromptTemplate | None = None,
) -> GradingOutcome:
    answer = validate_request(request)

    credential = api_key or resolve_api_key()
    if not credential:
        logger.error("grading credential missing", extra={"stage": "resolve_credential"})
        raise GradingConfigurationError(MISSING_API_KEY_MESSAGE)

    client = (client_factory or get_model_client)(credential)
    prompt = build_prompt(request.question_text, answer, request.rubric_tables, template or configured_template())
    reply = client.call_model(prompt)
    result = parse_grading_response(reply.text)
    result.feedback = wrap_latex_document(result.feedback)

    logger.info(
        "submission graded",
        extra={
            "stage": "grade_submission",
            "model": reply.model,
            "score": result.score,
            "confidence": result.confidence.value,
            "parsed_strictly": result.parsed_strictly,
            "failed_candidates": len(reply.failures),
        },
    )
    return GradingOutcome(result=result, model_used=reply.model)
