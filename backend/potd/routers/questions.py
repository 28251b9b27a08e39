"""Daily question and Q3 rubric endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from potd.db import get_session
from potd.models import DailyQuestion, utcnow
from potd.schemas import DailyQuestionRead, DailyQuestionWrite

router = APIRouter(prefix="/questions", tags=["questions"])


def _to_read(question: DailyQuestion) -> DailyQuestionRead:
    return DailyQuestionRead(
        day=question.day,
        q1_answer=question.q1_answer,
        q2_answer=question.q2_answer,
        q3_text=question.q3_text,
        q3_rubric=json.loads(question.q3_rubric_json or "[]"),
        updated_at=question.updated_at,
    )


@router.get("/{day}", response_model=DailyQuestionRead)
def get_question(day: int, session: Session = Depends(get_session)) -> DailyQuestionRead:
    question = session.exec(select(DailyQuestion).where(DailyQuestion.day == day)).first()
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return _to_read(question)


@router.put("/{day}", response_model=DailyQuestionRead)
def put_question(day: int, payload: DailyQuestionWrite, session: Session = Depends(get_session)) -> DailyQuestionRead:
    question = session.exec(select(DailyQuestion).where(DailyQuestion.day == day)).first()
    if not question:
        question = DailyQuestion(day=day)

    question.q1_answer = payload.q1_answer
    question.q2_answer = payload.q2_answer
    question.q3_text = payload.q3_text
    question.q3_rubric_json = json.dumps(payload.q3_rubric)
    question.updated_at = utcnow()
    session.add(question)
    session.commit()
    session.refresh(question)
    return _to_read(question)
