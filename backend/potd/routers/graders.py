"""Grader roster and grader work queues."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from potd.db import get_session
from potd.models import Grader
from potd.pipeline.grading_status import grader_queue
from potd.routers.submissions import to_submission_read
from potd.schemas import GraderCreate, GraderRead, SubmissionRead

router = APIRouter(prefix="/graders", tags=["graders"])


def _to_read(grader: Grader) -> GraderRead:
    return GraderRead(id=grader.id, name=grader.name, email=grader.email, active=grader.active)


@router.get("", response_model=list[GraderRead])
def list_graders(session: Session = Depends(get_session)) -> list[GraderRead]:
    graders = session.exec(select(Grader).where(Grader.active == True).order_by(Grader.id)).all()  # noqa: E712
    return [_to_read(grader) for grader in graders]


@router.post("", response_model=GraderRead, status_code=status.HTTP_201_CREATED)
def create_grader(payload: GraderCreate, session: Session = Depends(get_session)) -> GraderRead:
    grader = Grader(name=payload.name.strip(), email=payload.email.strip().lower())
    session.add(grader)
    session.commit()
    session.refresh(grader)
    return _to_read(grader)


@router.delete("/{grader_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_grader(grader_id: int, session: Session = Depends(get_session)) -> None:
    grader = session.get(Grader, grader_id)
    if not grader:
        raise HTTPException(status_code=404, detail="Grader not found")
    grader.active = False
    session.add(grader)
    session.commit()


@router.get("/{grader_id}/queue", response_model=list[SubmissionRead])
def get_grader_queue(grader_id: int, session: Session = Depends(get_session)) -> list[SubmissionRead]:
    if not session.get(Grader, grader_id):
        raise HTTPException(status_code=404, detail="Grader not found")
    return [to_submission_read(submission) for submission in grader_queue(session, grader_id)]
