"""Request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from potd.models import GradingStatus


class GradeSubmissionRequest(BaseModel):
    # Loosely typed on purpose: the grading route reports bad input itself.
    q3Answer: Any = None
    rubric: Any = None
    questionText: Any = None


class DailyQuestionWrite(BaseModel):
    q1_answer: str = ""
    q2_answer: str = ""
    q3_text: str = ""
    q3_rubric: list[dict[str, Any]] = Field(default_factory=list)


class DailyQuestionRead(DailyQuestionWrite):
    day: int
    updated_at: datetime


class GraderCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)


class GraderRead(BaseModel):
    id: int
    name: str
    email: str
    active: bool


class SubmissionCreate(BaseModel):
    day: int = Field(ge=1)
    student_name: str
    student_email: str
    q1_answer: str = ""
    q2_answer: str = ""
    q3_answer: str = ""
    total_time_seconds: int = Field(default=0, ge=0)
    exit_count: int = Field(default=0, ge=0)


class SubmissionRead(BaseModel):
    id: int
    day: int
    student_name: str
    student_email: str
    q3_answer: str
    q1_correct: bool
    q2_correct: bool
    total_time_seconds: int
    exit_count: int
    grading_status: GradingStatus
    assigned_grader_id: int | None
    ai_score: int | None
    ai_feedback: str | None
    ai_confidence: str | None
    ai_breakdown: dict[str, Any] = Field(default_factory=dict)
    ai_model: str | None
    q3_score: int | None
    q3_feedback: str | None
    graded_by_id: int | None
    total_score: int
    created_at: datetime


class HumanGradeRequest(BaseModel):
    score: int
    feedback: str
    grader_id: int | None = None


class BulkGradeResponse(BaseModel):
    graded: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class AssignResponse(BaseModel):
    assigned: int


class GradingStatsRead(BaseModel):
    pending: int
    assigned: int
    ai_graded: int
    human_graded: int


class LeaderboardEntryRead(BaseModel):
    rank: int
    name: str
    email: str
    total: int
    total_time_seconds: int
    days: int
