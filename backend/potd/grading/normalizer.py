"""Turn raw model output into a grading result.

Models wrap their JSON in code fences or prose often enough that a strict
``json.loads`` alone is not usable. Parsing is staged: fence extraction,
brace bounding, lenient cleanup, strict parse, and finally a regex pass over
the raw text that always yields something a human grader can review.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from potd.grading.base import Confidence, GradingResult

logger = logging.getLogger(__name__)

MAX_SCORE = 10
FALLBACK_SCORE = 5
DEFAULT_FEEDBACK = "No feedback provided."
FALLBACK_FEEDBACK = "Review submitted work for accuracy and completeness."

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_TRAILING_OBJECT_COMMA = re.compile(r",\s*}")
_TRAILING_ARRAY_COMMA = re.compile(r",\s*]")
_SCORE_PATTERN = re.compile(r"[\"']?score[\"']?\s*[:=]\s*(\d+)", re.IGNORECASE)
_FEEDBACK_PATTERN = re.compile(r"[\"']?feedback[\"']?\s*[:=]\s*[\"']([^\"']+)[\"']", re.IGNORECASE)

_VALID_CONFIDENCE = {item.value for item in Confidence}


def clamp_score(value: int) -> int:
    return max(0, min(MAX_SCORE, value))


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int):
        # Out-of-range ints clamp by sign; they may not fit a float.
        if abs(value) > MAX_SCORE:
            return math.copysign(math.inf, value)
        return float(value)
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            return float(stripped)
        except ValueError:
            return 0.0
    return 0.0


def normalize_score(value: Any) -> int:
    number = _as_number(value)
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return MAX_SCORE if number > 0 else 0
    return clamp_score(math.floor(number + 0.5))


def _normalize_feedback(value: Any) -> str:
    if not value:
        return DEFAULT_FEEDBACK
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value)
        except (ValueError, RecursionError):
            return DEFAULT_FEEDBACK
    return str(value)


def extract_json_candidate(text: str) -> str:
    candidate = text
    fenced = _CODE_FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    first_brace = candidate.find("{")
    last_brace = candidate.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        candidate = candidate[first_brace : last_brace + 1]

    candidate = _TRAILING_OBJECT_COMMA.sub("}", candidate)
    candidate = _TRAILING_ARRAY_COMMA.sub("]", candidate)
    return (
        candidate.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )


def _result_from_payload(payload: dict[str, Any]) -> GradingResult:
    confidence = payload.get("confidence")
    breakdown = payload.get("rubricBreakdown")
    return GradingResult(
        score=normalize_score(payload.get("score")),
        feedback=_normalize_feedback(payload.get("feedback")),
        confidence=Confidence(confidence)
        if isinstance(confidence, str) and confidence in _VALID_CONFIDENCE
        else Confidence.MEDIUM,
        rubric_breakdown=breakdown if isinstance(breakdown, dict) else {},
        parsed_strictly=True,
    )


def _first_sentence_line(text: str) -> str | None:
    for line in text.split("\n"):
        stripped = line.strip()
        if len(stripped) <= 20:
            continue
        if "{" in line or "}" in line or "json" in line.lower():
            continue
        return stripped
    return None


def _score_from_digits(digits: str) -> int:
    significant = digits.lstrip("0") or "0"
    if len(significant) > len(str(MAX_SCORE)):
        return MAX_SCORE
    return clamp_score(int(significant))


def _fallback_result(text: str) -> GradingResult:
    score_match = _SCORE_PATTERN.search(text)
    score = _score_from_digits(score_match.group(1)) if score_match else FALLBACK_SCORE

    feedback_match = _FEEDBACK_PATTERN.search(text)
    feedback = feedback_match.group(1) if feedback_match else ""
    if not feedback:
        feedback = _first_sentence_line(text) or FALLBACK_FEEDBACK

    return GradingResult(
        score=score,
        feedback=feedback,
        confidence=Confidence.LOW,
        rubric_breakdown={},
        parsed_strictly=False,
    )


def parse_grading_response(raw_text: str | None) -> GradingResult:
    text = raw_text or ""
    candidate = extract_json_candidate(text)
    try:
        payload = json.loads(candidate)
    except (ValueError, RecursionError) as exc:
        logger.warning(
            "grading response not valid JSON -> regex fallback",
            extra={"stage": "parse_fallback", "error": str(exc), "raw_length": len(text)},
        )
        return _fallback_result(text)

    if not isinstance(payload, dict):
        logger.warning(
            "grading response JSON is not an object -> regex fallback",
            extra={"stage": "parse_fallback", "payload_type": type(payload).__name__},
        )
        return _fallback_result(text)

    return _result_from_payload(payload)
