from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from potd.ai.gemini import AllEndpointsFailedError, CandidateFailure, ModelEndpointCandidate, ModelReply
from potd.grading.base import Confidence, GradingResult
from potd.grading.orchestrator import GradingOutcome
from potd.main import app
from potd.models import GradingStatus, Submission
from potd.pipeline.grading_status import (
    InvalidTransitionError,
    TOTAL_POSSIBLE,
    bulk_ai_grade,
    grading_stats,
    record_ai_grade,
    total_score,
)
from potd.routers.grade import get_client_factory

LONG_PROOF = "By induction: the base case n = 1 holds, and the step follows from k^2 + 2k + 1."


class ScriptedClient:
    def __init__(self, *texts: str) -> None:
        self.texts = list(texts)
        self.calls = 0

    def call_model(self, prompt: str) -> ModelReply:
        self.calls += 1
        return ModelReply(text=self.texts.pop(0), model="gemini-2.0-flash", api_version="v1")


class DownClient:
    def __init__(self) -> None:
        self.calls = 0

    def call_model(self, prompt: str) -> ModelReply:
        self.calls += 1
        candidate = ModelEndpointCandidate("v1beta", "gemini-2.5-flash")
        raise AllEndpointsFailedError(failures=[CandidateFailure(candidate, "service unavailable")])


@pytest.fixture()
def client(isolated_db, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _use_client(model_client) -> None:
    app.dependency_overrides[get_client_factory] = lambda: (lambda api_key: model_client)


def _submit(client: TestClient, name: str, email: str, **overrides) -> dict:
    body = {
        "day": 1,
        "student_name": name,
        "student_email": email,
        "q1_answer": "12",
        "q2_answer": "3/4",
        "q3_answer": LONG_PROOF,
        "total_time_seconds": 600,
    }
    body.update(overrides)
    response = client.post("/api/submissions", json=body)
    assert response.status_code == 201
    return response.json()


def _put_day_one(client: TestClient) -> None:
    response = client.put(
        "/api/questions/1",
        json={
            "q1_answer": "12",
            "q2_answer": "3/4",
            "q3_text": "Prove the sum of the first n odd numbers is n^2.",
            "q3_rubric": [{"columns": ["Criterion", "Points"], "rows": [["Base case", "3"], {"c0": "Inductive step", "c1": "7"}]}],
        },
    )
    assert response.status_code == 200


def test_question_round_trip(client) -> None:
    _put_day_one(client)

    response = client.get("/api/questions/1")

    assert response.status_code == 200
    assert response.json()["q3_rubric"][0]["rows"][1] == {"c0": "Inductive step", "c1": "7"}
    assert client.get("/api/questions/2").status_code == 404


def test_intake_auto_grades_objective_questions(client) -> None:
    _put_day_one(client)

    right = _submit(client, "Ada", "ada@example.com")
    wrong = _submit(client, "Bob", "bob@example.com", q1_answer=" 12 ", q2_answer="0.75")

    assert right["q1_correct"] is True and right["q2_correct"] is True
    assert right["grading_status"] == "pending"
    assert right["total_score"] == 10
    assert wrong["q1_correct"] is True
    assert wrong["q2_correct"] is False


def test_assign_round_robin_and_grader_queue(client) -> None:
    graders = [client.post("/api/graders", json={"name": n, "email": f"{n}@example.com"}).json() for n in ("g1", "g2")]
    for idx in range(3):
        _submit(client, f"S{idx}", f"s{idx}@example.com")

    response = client.post("/api/submissions/assign")

    assert response.json() == {"assigned": 3}
    queue_one = client.get(f"/api/graders/{graders[0]['id']}/queue").json()
    queue_two = client.get(f"/api/graders/{graders[1]['id']}/queue").json()
    assert [s["student_name"] for s in queue_one] == ["S0", "S2"]
    assert [s["student_name"] for s in queue_two] == ["S1"]
    assert client.get("/api/submissions/stats").json() == {"pending": 0, "assigned": 3, "ai_graded": 0, "human_graded": 0}
    assert client.post("/api/submissions/assign").json() == {"assigned": 0}


def test_assign_without_graders_leaves_pending(client) -> None:
    _submit(client, "Solo", "solo@example.com")

    assert client.post("/api/submissions/assign").json() == {"assigned": 0}
    assert client.get("/api/submissions", params={"status": "pending"}).json()[0]["student_name"] == "Solo"


def test_ai_grade_then_human_grade(client) -> None:
    _put_day_one(client)
    grader = client.post("/api/graders", json={"name": "Grace", "email": "grace@example.com"}).json()
    submission = _submit(client, "Ada", "ada@example.com")
    client.post("/api/submissions/assign")
    scripted = ScriptedClient('{"score": 6, "feedback": "Missing base case.", "confidence": "medium", "rubricBreakdown": {"Inductive step": 6}}')
    _use_client(scripted)

    ai_response = client.post(f"/api/submissions/{submission['id']}/ai-grade")

    assert ai_response.status_code == 200
    graded = ai_response.json()
    assert graded["grading_status"] == "ai_graded"
    assert graded["ai_score"] == 6
    assert graded["q3_score"] == 6
    assert graded["ai_confidence"] == "medium"
    assert graded["ai_model"] == "gemini-2.0-flash"
    assert graded["ai_breakdown"] == {"Inductive step": 6}
    assert "\\documentclass" in graded["ai_feedback"]
    assert graded["total_score"] == 16

    queue = client.get(f"/api/graders/{grader['id']}/queue").json()
    assert [s["grading_status"] for s in queue] == ["ai_graded"]

    human = client.post(
        f"/api/submissions/{submission['id']}/human-grade",
        json={"score": 8, "feedback": "Good induction.", "grader_id": grader["id"]},
    )

    assert human.status_code == 200
    assert human.json()["grading_status"] == "human_graded"
    assert human.json()["q3_score"] == 8
    assert human.json()["ai_score"] == 6
    assert client.get(f"/api/graders/{grader['id']}/queue").json() == []

    again = client.post(f"/api/submissions/{submission['id']}/ai-grade")
    assert again.status_code == 409
    assert scripted.calls == 1


def test_ai_grade_failure_leaves_status_unchanged(client) -> None:
    submission = _submit(client, "Ada", "ada@example.com")
    down = DownClient()
    _use_client(down)

    response = client.post(f"/api/submissions/{submission['id']}/ai-grade")

    assert response.status_code == 502
    assert "service unavailable" not in response.text
    assert client.get(f"/api/submissions/{submission['id']}").json()["grading_status"] == "pending"


def test_ai_grade_short_answer_is_bad_request(client) -> None:
    submission = _submit(client, "Ada", "ada@example.com", q3_answer="idk")
    _use_client(ScriptedClient('{"score": 1}'))

    response = client.post(f"/api/submissions/{submission['id']}/ai-grade")

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid submission: Answer too short or missing"


@pytest.mark.parametrize("body", [{"score": 11, "feedback": "x"}, {"score": -1, "feedback": "x"}, {"score": 5, "feedback": "   "}])
def test_human_grade_validation(client, body) -> None:
    submission = _submit(client, "Ada", "ada@example.com")

    response = client.post(f"/api/submissions/{submission['id']}/human-grade", json=body)

    assert response.status_code == 400


def test_unknown_submission_is_404(client) -> None:
    assert client.get("/api/submissions/999").status_code == 404
    assert client.post("/api/submissions/999/ai-grade").status_code == 404


def test_bulk_grade_skips_graded_and_empty_answers(client) -> None:
    _submit(client, "A", "a@example.com")
    _submit(client, "B", "b@example.com", q3_answer="")
    _submit(client, "C", "c@example.com", q3_answer="tiny")
    _submit(client, "D", "d@example.com")
    scripted = ScriptedClient('{"score": 7, "feedback": "ok"}', '{"score": 9, "feedback": "great"}')
    _use_client(scripted)

    response = client.post("/api/submissions/bulk-ai-grade")

    report = response.json()
    assert report["graded"] == 2
    assert report["failed"] == 1
    assert scripted.calls == 2
    stats = client.get("/api/submissions/stats").json()
    assert stats["ai_graded"] == 2
    assert stats["pending"] == 2


def test_bulk_grade_stops_when_backend_is_down(client) -> None:
    for idx in range(3):
        _submit(client, f"S{idx}", f"s{idx}@example.com")
    down = DownClient()
    _use_client(down)

    report = client.post("/api/submissions/bulk-ai-grade").json()

    assert down.calls == 1
    assert report["graded"] == 0
    assert report["failed"] == 3
    assert len(report["errors"]) == 1


def test_leaderboard_orders_by_total_then_time(client) -> None:
    _put_day_one(client)
    _submit(client, "Ada", "ADA@example.com", total_time_seconds=900)
    _submit(client, "Bob", "bob@example.com", total_time_seconds=300)
    _submit(client, "Cy", "cy@example.com", q1_answer="wrong", total_time_seconds=100)
    _submit(client, "Ada", "ada@example.com", day=2, q1_answer="", q2_answer="", total_time_seconds=100)

    board = client.get("/api/leaderboard").json()

    assert [(row["rank"], row["name"], row["total"], row["days"]) for row in board] == [
        (1, "Bob", 10, 1),
        (2, "Ada", 10, 2),
        (3, "Cy", 6, 1),
    ]
    assert board[1]["email"] == "ada@example.com"
    assert [row["name"] for row in client.get("/api/leaderboard", params={"day": 2}).json()] == ["Ada"]


def test_remove_grader_excludes_from_assignment(client) -> None:
    keep = client.post("/api/graders", json={"name": "Keep", "email": "keep@example.com"}).json()
    gone = client.post("/api/graders", json={"name": "Gone", "email": "gone@example.com"}).json()

    assert client.delete(f"/api/graders/{gone['id']}").status_code == 204
    _submit(client, "A", "a@example.com")
    _submit(client, "B", "b@example.com")
    client.post("/api/submissions/assign")

    assert [g["id"] for g in client.get("/api/graders").json()] == [keep["id"]]
    assert len(client.get(f"/api/graders/{keep['id']}/queue").json()) == 2


def _outcome(score: int) -> GradingOutcome:
    return GradingOutcome(
        result=GradingResult(score=score, feedback="f", confidence=Confidence.HIGH, rubric_breakdown={"a": 1}),
        model_used="gemini-1.5-pro",
    )


def test_record_ai_grade_refuses_human_graded(isolated_db) -> None:
    with Session(isolated_db) as session:
        submission = Submission(day=1, student_name="A", student_email="a@example.com", grading_status=GradingStatus.HUMAN_GRADED, q3_score=9)
        session.add(submission)
        session.commit()

        with pytest.raises(InvalidTransitionError):
            record_ai_grade(session, submission, _outcome(3))

        assert submission.q3_score == 9
        assert json.loads(record_ai_grade(session, Submission(day=1, student_name="B", student_email="b@example.com"), _outcome(3)).ai_breakdown_json) == {"a": 1}


def test_grading_stats_counts_every_status(isolated_db) -> None:
    with Session(isolated_db) as session:
        for status in (GradingStatus.PENDING, GradingStatus.AI_GRADED, GradingStatus.AI_GRADED, GradingStatus.HUMAN_GRADED):
            session.add(Submission(day=1, student_name="x", student_email="x@example.com", grading_status=status))
        session.commit()

        assert grading_stats(session) == {"pending": 1, "assigned": 0, "ai_graded": 2, "human_graded": 1}


def test_total_score_caps_at_twenty() -> None:
    submission = Submission(day=1, student_name="x", student_email="x@example.com", q1_correct=True, q2_correct=True, q3_score=10)

    assert total_score(submission) == TOTAL_POSSIBLE == 20


def test_bulk_ai_grade_without_credential_reports_failures(isolated_db, monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with Session(isolated_db) as session:
        session.add(Submission(day=1, student_name="x", student_email="x@example.com", q3_answer=LONG_PROOF))
        session.commit()

        report = bulk_ai_grade(session, client_factory=lambda api_key: ScriptedClient())

    assert report.graded == 0
    assert report.failed == 1
    assert "Missing API key" in report.errors[0]
