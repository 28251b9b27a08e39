"""SQLModel ORM models for the grading workflow."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Return timezone-aware UTC now timestamp."""
    return datetime.now(timezone.utc)


class GradingStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    AI_GRADED = "ai_graded"
    HUMAN_GRADED = "human_graded"


class DailyQuestion(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    day: int = Field(index=True, unique=True)
    q1_answer: str = ""
    q2_answer: str = ""
    q3_text: str = ""
    q3_rubric_json: str = "[]"
    updated_at: datetime = Field(default_factory=utcnow)


class Grader(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True)
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class Submission(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    day: int = Field(index=True)
    student_name: str
    student_email: str = Field(index=True)
    q1_answer: str = ""
    q2_answer: str = ""
    q3_answer: str = ""
    q1_correct: bool = False
    q2_correct: bool = False
    total_time_seconds: int = 0
    exit_count: int = 0

    grading_status: GradingStatus = Field(default=GradingStatus.PENDING, index=True)
    assigned_grader_id: Optional[int] = Field(default=None, foreign_key="grader.id", index=True)

    ai_score: Optional[int] = None
    ai_feedback: Optional[str] = None
    ai_confidence: Optional[str] = None
    ai_breakdown_json: Optional[str] = None
    ai_model: Optional[str] = None

    q3_score: Optional[int] = None
    q3_feedback: Optional[str] = None
    graded_by_id: Optional[int] = Field(default=None, foreign_key="grader.id")

    created_at: datetime = Field(default_factory=utcnow)
    assigned_at: Optional[datetime] = None
    ai_graded_at: Optional[datetime] = None
    human_graded_at: Optional[datetime] = None
