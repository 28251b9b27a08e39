"""Grading data types and errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from potd.grading.rubric import RubricTable


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class GradingRequest:
    question_text: str
    student_answer: Any
    rubric_tables: list[RubricTable] = field(default_factory=list)


@dataclass
class GradingResult:
    score: int
    feedback: str
    confidence: Confidence
    rubric_breakdown: dict[str, Any] = field(default_factory=dict)
    parsed_strictly: bool = True


class GradingError(Exception):
    """Base class for grading failures surfaced to callers."""

    error_kind = "grading"


class SubmissionValidationError(GradingError):
    error_kind = "validation"


class GradingConfigurationError(GradingError):
    error_kind = "configuration"
