"""Leaderboard endpoint."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from potd.db import get_session
from potd.models import Submission
from potd.pipeline.leaderboard import build_leaderboard
from potd.schemas import LeaderboardEntryRead

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=list[LeaderboardEntryRead])
def get_leaderboard(day: int | None = None, session: Session = Depends(get_session)) -> list[LeaderboardEntryRead]:
    statement = select(Submission)
    if day is not None:
        statement = statement.where(Submission.day == day)
    return [LeaderboardEntryRead(**asdict(entry)) for entry in build_leaderboard(session.exec(statement).all())]
