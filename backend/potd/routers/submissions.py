"""Submission intake and grading-status endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select

from potd.ai.gemini import AllEndpointsFailedError
from potd.db import get_session
from potd.grading.base import GradingConfigurationError, SubmissionValidationError
from potd.grading.orchestrator import ClientFactory
from potd.models import GradingStatus, Submission
from potd.pipeline.grading_status import (
    HumanGradeError,
    InvalidTransitionError,
    ai_grade,
    assign_pending,
    bulk_ai_grade,
    grading_stats,
    intake_submission,
    record_human_grade,
    total_score,
)
from potd.routers.grade import UPSTREAM_FAILURE_MESSAGE, get_client_factory
from potd.schemas import (
    AssignResponse,
    BulkGradeResponse,
    GradingStatsRead,
    HumanGradeRequest,
    SubmissionCreate,
    SubmissionRead,
)

router = APIRouter(prefix="/submissions", tags=["submissions"])


def to_submission_read(submission: Submission) -> SubmissionRead:
    return SubmissionRead(
        id=submission.id,
        day=submission.day,
        student_name=submission.student_name,
        student_email=submission.student_email,
        q3_answer=submission.q3_answer,
        q1_correct=submission.q1_correct,
        q2_correct=submission.q2_correct,
        total_time_seconds=submission.total_time_seconds,
        exit_count=submission.exit_count,
        grading_status=submission.grading_status,
        assigned_grader_id=submission.assigned_grader_id,
        ai_score=submission.ai_score,
        ai_feedback=submission.ai_feedback,
        ai_confidence=submission.ai_confidence,
        ai_breakdown=json.loads(submission.ai_breakdown_json) if submission.ai_breakdown_json else {},
        ai_model=submission.ai_model,
        q3_score=submission.q3_score,
        q3_feedback=submission.q3_feedback,
        graded_by_id=submission.graded_by_id,
        total_score=total_score(submission),
        created_at=submission.created_at,
    )


def _get_submission_or_404(session: Session, submission_id: int) -> Submission:
    submission = session.get(Submission, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


@router.post("", response_model=SubmissionRead, status_code=status.HTTP_201_CREATED)
def create_submission(payload: SubmissionCreate, session: Session = Depends(get_session)) -> SubmissionRead:
    submission = intake_submission(session, Submission(**payload.model_dump()))
    return to_submission_read(submission)


@router.get("", response_model=list[SubmissionRead])
def list_submissions(
    day: int | None = Query(default=None),
    grading_status: GradingStatus | None = Query(default=None, alias="status"),
    session: Session = Depends(get_session),
) -> list[SubmissionRead]:
    statement = select(Submission).order_by(Submission.id)
    if day is not None:
        statement = statement.where(Submission.day == day)
    if grading_status is not None:
        statement = statement.where(Submission.grading_status == grading_status)
    return [to_submission_read(submission) for submission in session.exec(statement).all()]


@router.get("/stats", response_model=GradingStatsRead)
def get_grading_stats(session: Session = Depends(get_session)) -> GradingStatsRead:
    return GradingStatsRead(**grading_stats(session))


@router.post("/assign", response_model=AssignResponse)
def assign_submissions(session: Session = Depends(get_session)) -> AssignResponse:
    return AssignResponse(assigned=assign_pending(session))


@router.post("/bulk-ai-grade", response_model=BulkGradeResponse)
def bulk_grade(
    session: Session = Depends(get_session),
    client_factory: ClientFactory = Depends(get_client_factory),
) -> BulkGradeResponse:
    report = bulk_ai_grade(session, client_factory=client_factory)
    return BulkGradeResponse(graded=report.graded, failed=report.failed, errors=report.errors)


@router.get("/{submission_id}", response_model=SubmissionRead)
def get_submission(submission_id: int, session: Session = Depends(get_session)) -> SubmissionRead:
    return to_submission_read(_get_submission_or_404(session, submission_id))


@router.post("/{submission_id}/ai-grade", response_model=SubmissionRead)
def ai_grade_submission(
    submission_id: int,
    session: Session = Depends(get_session),
    client_factory: ClientFactory = Depends(get_client_factory),
) -> SubmissionRead:
    submission = _get_submission_or_404(session, submission_id)
    try:
        graded = ai_grade(session, submission, client_factory=client_factory)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SubmissionValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GradingConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except AllEndpointsFailedError as exc:
        raise HTTPException(status_code=502, detail=UPSTREAM_FAILURE_MESSAGE) from exc
    return to_submission_read(graded)


@router.post("/{submission_id}/human-grade", response_model=SubmissionRead)
def human_grade_submission(
    submission_id: int,
    payload: HumanGradeRequest,
    session: Session = Depends(get_session),
) -> SubmissionRead:
    submission = _get_submission_or_404(session, submission_id)
    try:
        graded = record_human_grade(session, submission, payload.score, payload.feedback, payload.grader_id)
    except HumanGradeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_submission_read(graded)
