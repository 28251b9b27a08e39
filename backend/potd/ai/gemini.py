"""Gemini generateContent client with an ordered model fallback chain."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Sequence

import httpx

from potd.grading.base import GradingError
from potd.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelEndpointCandidate:
    api_version: Literal["v1", "v1beta"]
    model: str


_MODEL_GENERATIONS = (
    # 2.5 generation
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.5-flash-lite",
    # 2.0 generation
    "gemini-2.0-flash",
    # 1.x generation
    "gemini-1.5-flash",
    "gemini-1.5-pro",
    "gemini-1.0-pro",
    "gemini-pro",
)

# Some keys only surface a model under one namespace, so v1 mirrors v1beta.
DEFAULT_FALLBACK_CHAIN: tuple[ModelEndpointCandidate, ...] = tuple(
    ModelEndpointCandidate(api_version=version, model=model)
    for version in ("v1beta", "v1")
    for model in _MODEL_GENERATIONS
)


@dataclass
class CandidateFailure:
    candidate: ModelEndpointCandidate
    message: str


@dataclass
class ModelReply:
    text: str
    model: str
    api_version: str
    failures: list[CandidateFailure] = field(default_factory=list)


@dataclass
class AllEndpointsFailedError(GradingError):
    failures: list[CandidateFailure]

    error_kind = "upstream"

    @property
    def messages(self) -> list[str]:
        return [failure.message for failure in self.failures]

    def __str__(self) -> str:
        detail = "; ".join(f"{failure.candidate.model}: {failure.message}" for failure in self.failures)
        return f"All Gemini models failed: {detail}"


class LastGoodEndpointCache:
    """Single-slot memo of the candidate that last answered.

    Purely advisory: concurrent writers may overwrite each other, which only
    changes which candidate gets tried first.
    """

    def __init__(self) -> None:
        self._candidate: ModelEndpointCandidate | None = None

    def get(self) -> ModelEndpointCandidate | None:
        return self._candidate

    def remember(self, candidate: ModelEndpointCandidate) -> None:
        self._candidate = candidate

    def clear(self) -> None:
        self._candidate = None


class ModelClient(Protocol):
    def call_model(self, prompt: str) -> ModelReply:
        """Return generated text for a single-turn prompt."""


@dataclass
class _CandidateError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


def build_generate_request(prompt: str, generation_config: dict[str, Any]) -> dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": dict(generation_config),
    }


def _extract_text(data: Any) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(parts, list):
        return ""
    return "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict)).strip()


def _error_message(data: Any) -> str | None:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return None


class GeminiFallbackClient:
    def __init__(
        self,
        api_key: str,
        *,
        endpoints: Sequence[ModelEndpointCandidate] = DEFAULT_FALLBACK_CHAIN,
        cache: LastGoodEndpointCache | None = None,
        timeout_seconds: float | None = None,
        base_url: str | None = None,
        generation_config: dict[str, Any] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._endpoints = tuple(endpoints)
        self._cache = cache
        self._timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.gemini_timeout_seconds
        self._base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._generation_config = generation_config or settings.generation_config
        self._transport = transport

    def endpoint_url(self, candidate: ModelEndpointCandidate) -> str:
        return f"{self._base_url}/{candidate.api_version}/models/{candidate.model}:generateContent"

    def ordered_candidates(self) -> list[ModelEndpointCandidate]:
        ordered: list[ModelEndpointCandidate] = []
        cached = self._cache.get() if self._cache is not None else None
        if cached is not None and cached in self._endpoints:
            ordered.append(cached)
        for candidate in self._endpoints:
            if candidate not in ordered:
                ordered.append(candidate)
        return ordered

    def _attempt(self, client: httpx.Client, candidate: ModelEndpointCandidate, payload: dict[str, Any]) -> str:
        # httpx timeouts are per phase; the deadline bounds the whole attempt.
        deadline = time.monotonic() + self._timeout_seconds
        timed_out = f"timed out after {self._timeout_seconds:g}s"
        chunks: list[bytes] = []
        try:
            with client.stream(
                "POST", self.endpoint_url(candidate), params={"key": self._api_key}, json=payload
            ) as response:
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise _CandidateError(timed_out)
                    chunks.append(chunk)
        except httpx.TimeoutException as exc:
            raise _CandidateError(timed_out) from exc
        except httpx.HTTPError as exc:
            raise _CandidateError(f"request error: {exc}") from exc

        try:
            data = json.loads(b"".join(chunks))
        except (ValueError, RecursionError):
            data = None

        if not response.is_success:
            message = _error_message(data) or f"{candidate.model} request failed (HTTP {response.status_code})"
            raise _CandidateError(message)
        if data is None:
            raise _CandidateError("Unexpected Gemini response: body is not JSON")

        text = _extract_text(data)
        if not text:
            raise _CandidateError("Empty response from Gemini")
        return text

    def call_model(self, prompt: str) -> ModelReply:
        payload = build_generate_request(prompt, self._generation_config)
        failures: list[CandidateFailure] = []

        with httpx.Client(timeout=self._timeout_seconds, transport=self._transport) as client:
            for attempt, candidate in enumerate(self.ordered_candidates(), start=1):
                started = time.perf_counter()
                try:
                    text = self._attempt(client, candidate, payload)
                except _CandidateError as exc:
                    failures.append(CandidateFailure(candidate=candidate, message=str(exc)))
                    logger.warning(
                        "grading candidate failed",
                        extra={
                            "stage": "call_gemini_candidate",
                            "model": candidate.model,
                            "api_version": candidate.api_version,
                            "attempt": attempt,
                            "error": str(exc),
                        },
                    )
                    continue

                if self._cache is not None:
                    self._cache.remember(candidate)
                logger.info(
                    "grading candidate succeeded",
                    extra={
                        "stage": "call_gemini_candidate",
                        "model": candidate.model,
                        "api_version": candidate.api_version,
                        "attempt": attempt,
                        "gemini_ms": int((time.perf_counter() - started) * 1000),
                    },
                )
                return ModelReply(text=text, model=candidate.model, api_version=candidate.api_version, failures=failures)

        raise AllEndpointsFailedError(failures=failures)


class MockModelClient:
    """Offline stand-in returning a fixed, well-formed grading reply."""

    model = "mock-gemini"

    def call_model(self, prompt: str) -> ModelReply:
        del prompt
        text = json.dumps(
            {
                "score": 7,
                "feedback": "Clear argument with a small gap in the final step.",
                "confidence": "medium",
                "rubricBreakdown": {"correctness": 3, "clarity": 2, "completeness": 2},
            }
        )
        return ModelReply(text=text, model=self.model, api_version="mock")


def mock_enabled() -> bool:
    return os.getenv("GEMINI_MOCK", "").strip() == "1"


def get_model_client(api_key: str, cache: LastGoodEndpointCache | None = None) -> ModelClient:
    if mock_enabled():
        return MockModelClient()
    return GeminiFallbackClient(api_key, cache=cache)
