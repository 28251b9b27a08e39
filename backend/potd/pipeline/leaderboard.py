"""Leaderboard aggregation over graded submissions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from potd.models import Submission
from potd.pipeline.grading_status import total_score


@dataclass
class LeaderboardEntry:
    rank: int
    name: str
    email: str
    total: int
    total_time_seconds: int
    days: int


def build_leaderboard(submissions: Iterable[Submission]) -> list[LeaderboardEntry]:
    by_student: dict[str, dict] = {}
    for submission in submissions:
        email = (submission.student_email or "").lower()
        entry = by_student.setdefault(email, {"name": submission.student_name, "total": 0, "time": 0, "days": 0})
        entry["total"] += total_score(submission)
        entry["time"] += submission.total_time_seconds
        entry["days"] += 1

    ordered = sorted(by_student.items(), key=lambda item: (-item[1]["total"], item[1]["time"]))
    return [
        LeaderboardEntry(
            rank=idx,
            name=entry["name"],
            email=email,
            total=entry["total"],
            total_time_seconds=entry["time"],
            days=entry["days"],
        )
        for idx, (email, entry) in enumerate(ordered, start=1)
    ]
