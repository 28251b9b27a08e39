"""AI grading endpoint for the Q3 proof/explanation answer."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from potd.ai.gemini import AllEndpointsFailedError, get_model_client
from potd.grading.base import GradingConfigurationError, GradingRequest, SubmissionValidationError
from potd.grading.orchestrator import ClientFactory, grade_submission
from potd.grading.rubric import rubric_tables_from_payload
from potd.schemas import GradeSubmissionRequest

router = APIRouter(tags=["grading"])
logger = logging.getLogger(__name__)

UPSTREAM_FAILURE_MESSAGE = "AI grading is temporarily unavailable. Please try again later."


def get_client_factory(request: Request) -> ClientFactory:
    cache = getattr(request.app.state, "endpoint_cache", None)

    def _factory(api_key: str):
        return get_model_client(api_key, cache=cache)

    return _factory


async def read_grade_payload(request: Request) -> GradeSubmissionRequest:
    """Parse the body leniently so malformed input reaches the 400 path."""
    try:
        body = await request.json()
    except (ValueError, RecursionError):
        body = None
    if not isinstance(body, dict):
        body = {}
    return GradeSubmissionRequest.model_validate(body)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post("/grade-submission")
def grade_submission_endpoint(
    payload: GradeSubmissionRequest = Depends(read_grade_payload),
    client_factory: ClientFactory = Depends(get_client_factory),
) -> JSONResponse:
    grading_request = GradingRequest(
        question_text=payload.questionText if isinstance(payload.questionText, str) else "",
        student_answer=payload.q3Answer,
        rubric_tables=rubric_tables_from_payload(payload.rubric),
    )
    try:
        outcome = grade_submission(grading_request, client_factory=client_factory)
    except SubmissionValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))
    except GradingConfigurationError as exc:
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except AllEndpointsFailedError as exc:
        logger.error(
            "grade-submission upstream exhausted",
            extra={"stage": "grade_submission", "attempts": len(exc.failures), "error": str(exc)},
        )
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_FAILURE_MESSAGE)

    return JSONResponse(status_code=status.HTTP_200_OK, content=outcome.to_payload())
