"""Grading-status transitions for submissions.

pending -> assigned -> ai_graded -> human_graded. AI grading may also start
from pending and may be repeated, but never overwrites a human grade.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlmodel import Session, col, select

from potd.ai.gemini import AllEndpointsFailedError
from potd.grading.base import GradingConfigurationError, GradingRequest, SubmissionValidationError
from potd.grading.orchestrator import ClientFactory, GradingOutcome, grade_submission
from potd.grading.rubric import rubric_tables_from_payload
from potd.models import DailyQuestion, Grader, GradingStatus, Submission, utcnow

logger = logging.getLogger(__name__)

Q1_POINTS = 4
Q2_POINTS = 6
Q3_MAX_POINTS = 10
TOTAL_POSSIBLE = Q1_POINTS + Q2_POINTS + Q3_MAX_POINTS

_AI_GRADABLE = {GradingStatus.PENDING, GradingStatus.ASSIGNED, GradingStatus.AI_GRADED}


@dataclass
class InvalidTransitionError(Exception):
    submission_id: int | None
    current: GradingStatus
    target: GradingStatus

    def __str__(self) -> str:
        return f"Submission {self.submission_id} cannot move from {self.current.value} to {self.target.value}"


@dataclass
class HumanGradeError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


def _answers_match(given: str, expected: str) -> bool:
    return bool(expected.strip()) and given.strip() == expected.strip()


def intake_submission(session: Session, submission: Submission) -> Submission:
    """Auto-grade the objective questions and store the submission as pending."""
    question = session.exec(select(DailyQuestion).where(DailyQuestion.day == submission.day)).first()
    if question is not None:
        submission.q1_correct = _answers_match(submission.q1_answer, question.q1_answer)
        submission.q2_correct = _answers_match(submission.q2_answer, question.q2_answer)
    submission.grading_status = GradingStatus.PENDING
    session.add(submission)
    session.commit()
    session.refresh(submission)
    return submission


def assign_pending(session: Session) -> int:
    graders = session.exec(select(Grader).where(Grader.active == True).order_by(Grader.id)).all()  # noqa: E712
    if not graders:
        return 0

    pending = session.exec(
        select(Submission).where(Submission.grading_status == GradingStatus.PENDING).order_by(Submission.id)
    ).all()
    for idx, submission in enumerate(pending):
        grader = graders[idx % len(graders)]
        submission.assigned_grader_id = grader.id
        submission.grading_status = GradingStatus.ASSIGNED
        submission.assigned_at = utcnow()
        session.add(submission)
    session.commit()
    logger.info("assigned pending submissions", extra={"stage": "assign_pending", "count": len(pending), "graders": len(graders)})
    return len(pending)


def record_ai_grade(session: Session, submission: Submission, outcome: GradingOutcome) -> Submission:
    if submission.grading_status not in _AI_GRADABLE:
        raise InvalidTransitionError(submission.id, submission.grading_status, GradingStatus.AI_GRADED)

    result = outcome.result
    submission.ai_score = result.score
    submission.ai_feedback = result.feedback
    submission.ai_confidence = result.confidence.value
    submission.ai_breakdown_json = json.dumps(result.rubric_breakdown)
    submission.ai_model = outcome.model_used
    submission.q3_score = result.score
    submission.q3_feedback = result.feedback
    submission.grading_status = GradingStatus.AI_GRADED
    submission.ai_graded_at = utcnow()
    session.add(submission)
    session.commit()
    session.refresh(submission)
    return submission


def record_human_grade(
    session: Session,
    submission: Submission,
    score: int,
    feedback: str,
    grader_id: int | None = None,
) -> Submission:
    if not 0 <= score <= Q3_MAX_POINTS:
        raise HumanGradeError(f"Score must be between 0 and {Q3_MAX_POINTS}")
    if not feedback.strip():
        raise HumanGradeError("Feedback is required")

    submission.q3_score = score
    submission.q3_feedback = feedback
    submission.graded_by_id = grader_id
    submission.grading_status = GradingStatus.HUMAN_GRADED
    submission.human_graded_at = utcnow()
    session.add(submission)
    session.commit()
    session.refresh(submission)
    return submission


def grading_stats(session: Session) -> dict[str, int]:
    counts = Counter(status for status in session.exec(select(Submission.grading_status)).all())
    stats = {status.value: 0 for status in GradingStatus}
    for status, count in counts.items():
        key = status.value if isinstance(status, GradingStatus) else str(status)
        if key in stats:
            stats[key] += count
        else:
            stats[GradingStatus.PENDING.value] += count
    return stats


def grader_queue(session: Session, grader_id: int) -> list[Submission]:
    return list(
        session.exec(
            select(Submission)
            .where(Submission.assigned_grader_id == grader_id)
            .where(col(Submission.grading_status).in_([GradingStatus.ASSIGNED, GradingStatus.AI_GRADED]))
            .order_by(Submission.id)
        ).all()
    )


def needs_ai_grade(submission: Submission) -> bool:
    return (
        submission.q3_score is None
        and bool(submission.q3_answer.strip())
        and submission.grading_status in _AI_GRADABLE
    )


def total_score(submission: Submission) -> int:
    q1 = Q1_POINTS if submission.q1_correct else 0
    q2 = Q2_POINTS if submission.q2_correct else 0
    return q1 + q2 + (submission.q3_score or 0)


def _grading_request_for(session: Session, submission: Submission) -> GradingRequest:
    question = session.exec(select(DailyQuestion).where(DailyQuestion.day == submission.day)).first()
    if question is None:
        return GradingRequest(question_text="", student_answer=submission.q3_answer)
    return GradingRequest(
        question_text=question.q3_text,
        student_answer=submission.q3_answer,
        rubric_tables=rubric_tables_from_payload(json.loads(question.q3_rubric_json or "[]")),
    )


def ai_grade(session: Session, submission: Submission, *, client_factory: ClientFactory | None = None) -> Submission:
    """Grade Q3 with the model and advance the submission to ai_graded.

    The status is checked before any model call; on failure the submission is
    left untouched and the error propagates.
    """
    if submission.grading_status not in _AI_GRADABLE:
        raise InvalidTransitionError(submission.id, submission.grading_status, GradingStatus.AI_GRADED)
    outcome = grade_submission(_grading_request_for(session, submission), client_factory=client_factory)
    return record_ai_grade(session, submission, outcome)


@dataclass
class BulkGradeReport:
    graded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def bulk_ai_grade(session: Session, *, client_factory: ClientFactory | None = None) -> BulkGradeReport:
    candidates = [
        submission
        for submission in session.exec(select(Submission).order_by(Submission.id)).all()
        if needs_ai_grade(submission)
    ]
    report = BulkGradeReport()
    for idx, submission in enumerate(candidates):
        try:
            ai_grade(session, submission, client_factory=client_factory)
        except (AllEndpointsFailedError, GradingConfigurationError) as exc:
            # The backend is unavailable for every remaining submission too.
            remaining = len(candidates) - idx
            report.failed += remaining
            report.errors.append(f"Submission {submission.id}: {exc}")
            logger.error(
                "bulk grading stopped",
                extra={"stage": "bulk_ai_grade", "submission_id": submission.id, "skipped": remaining - 1},
            )
            break
        except (SubmissionValidationError, InvalidTransitionError) as exc:
            report.failed += 1
            report.errors.append(f"Submission {submission.id}: {exc}")
            continue
        report.graded += 1
    return report
