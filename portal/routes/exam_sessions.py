from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from ..auth.dependencies import Scope, get_scope, require_student
from ..database import get_db
from ..schemas.core import Envelope, ok
from ..schemas.exams import AnswersUpdate, ExamSessionOut
from ..services.exam_session import (
    ERROR,
    STARTED,
    SUBMITTED,
    ExamSession,
    enforce_deadline,
    load_session,
    save_answers,
    start_session,
    submit_session,
)
from .exam_applications import get_scoped_application
from .questions import question_doc_to_out

router = APIRouter()


def _session_out(session: ExamSession) -> ExamSessionOut:
    application = session.application
    state = session.state
    paper = session.paper or {}
    return ExamSessionOut(
        application_id=str(application["_id"]),
        state=state,
        paper_name=paper.get("paper_name"),
        time_minutes=paper.get("time"),
        remaining_seconds=session.remaining_seconds() if state != ERROR else None,
        questions=(
            [question_doc_to_out(q, reveal_answer=False) for q in session.questions]
            if state != ERROR
            else []
        ),
        answers=application.get("answers") or {},
        score=application.get("score") if state == SUBMITTED else None,
        percentage=application.get("percentage") if state == SUBMITTED else None,
        error=session.error if state == ERROR else None,
    )


def _session_for(db: Database, application_id: str, scope: Scope) -> ExamSession:
    application = get_scoped_application(db, application_id, scope)
    return enforce_deadline(db, load_session(db, application))


def _student_scope(current_user: dict = Depends(require_student)) -> Scope:
    return get_scope(current_user)


@router.get("/{application_id}", response_model=Envelope[ExamSessionOut])
def get_exam_session(
    application_id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    return ok(_session_out(_session_for(db, application_id, scope)))


@router.post("/{application_id}/start", response_model=Envelope[ExamSessionOut])
def start_exam(
    application_id: str,
    scope: Scope = Depends(_student_scope),
    db: Database = Depends(get_db),
):
    session = _session_for(db, application_id, scope)
    if session.state == ERROR:
        raise HTTPException(status_code=400, detail=session.error)
    if session.state == SUBMITTED:
        raise HTTPException(status_code=400, detail="This exam has already been submitted")
    session = start_session(db, session)
    return ok(_session_out(session), "Exam started")


@router.put("/{application_id}/answers", response_model=Envelope[ExamSessionOut])
def update_answers(
    application_id: str,
    payload: AnswersUpdate,
    scope: Scope = Depends(_student_scope),
    db: Database = Depends(get_db),
):
    session = _session_for(db, application_id, scope)
    if session.state == SUBMITTED:
        raise HTTPException(status_code=409, detail="Time is up; the exam was submitted")
    if session.state != STARTED:
        raise HTTPException(status_code=400, detail="Exam has not been started")
    session = save_answers(db, session, payload.answers)
    return ok(_session_out(session), "Answers saved")


@router.post("/{application_id}/submit", response_model=Envelope[ExamSessionOut])
def submit_exam(
    application_id: str,
    scope: Scope = Depends(_student_scope),
    db: Database = Depends(get_db),
):
    session = _session_for(db, application_id, scope)
    if session.state == SUBMITTED:
        return ok(_session_out(session), "Exam already submitted")
    if session.state != STARTED:
        raise HTTPException(status_code=400, detail="Exam has not been started")
    session = submit_session(db, session)
    return ok(_session_out(session), "Exam submitted")
