from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from quizdesk.core.rate_limit import rate_limit
from quizdesk.core.security import get_current_user, require_roles
from quizdesk.db.session import get_db
from quizdesk.models.attempt import QuizAttempt, QuizResult
from quizdesk.models.quiz import Quiz
from quizdesk.models.user import User, UserRole
from quizdesk.schemas.attempt import (
    AttemptPublic,
    AttemptResponse,
    AutoSaveRequest,
    AutoSaveResponse,
    ResultPublic,
    SubmitRequest,
    SubmitResponse,
)
from quizdesk.schemas.quiz import QuizDetailResponse, QuizListResponse, QuizPublic
from quizdesk.services.attempts import AttemptService, AttemptState, as_utc
from quizdesk.services.quizzes import QuizService
from quizdesk.services.submissions import SubmissionService, SubmittedAnswer

router = APIRouter(prefix="/quizzes", tags=["quizzes"])

require_student = require_roles(UserRole.student)


def parse_uuid(value: str, *, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {what}") from e


def quiz_public(quiz: Quiz) -> QuizPublic:
    return QuizPublic(
        id=str(quiz.id),
        title=quiz.title,
        class_name=quiz.class_name,
        start_time=as_utc(quiz.start_time),
        end_time=as_utc(quiz.end_time),
        duration_minutes=quiz.duration_minutes,
        published=bool(quiz.published),
    )


def attempt_public(attempt: QuizAttempt) -> AttemptPublic:
    return AttemptPublic(
        id=str(attempt.id),
        quiz_id=str(attempt.quiz_id),
        start_time=as_utc(attempt.start_time),
        end_time=as_utc(attempt.end_time),
        submitted=bool(attempt.submitted),
    )


def result_public(result: QuizResult) -> ResultPublic:
    return ResultPublic(
        id=str(result.id),
        quiz_id=str(result.quiz_id),
        score=int(result.score),
        total=int(result.total),
        submitted_at=as_utc(result.submitted_at),
    )


def _attempt_response(state: AttemptState) -> AttemptResponse:
    return AttemptResponse(attempt=attempt_public(state.attempt), time_left_seconds=state.time_left_seconds)


@router.get("", response_model=QuizListResponse)
def list_quizzes(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    quizzes = QuizService(db).list_quizzes(user)
    return QuizListResponse(quizzes=[quiz_public(q) for q in quizzes])


@router.get("/{quiz_id}", response_model=QuizDetailResponse)
def get_quiz_for_taking(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    qid = parse_uuid(quiz_id, what="quiz id")
    view = QuizService(db).quiz_for_taking(user, qid)
    return {"quiz": quiz_public(view.quiz), "questions": view.questions, "attempted": view.attempted}


@router.post("/{quiz_id}/start", response_model=AttemptResponse)
def start_attempt(
    quiz_id: str,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(require_student),
    _: object = rate_limit(key_prefix="quiz_start", limit=30, window_seconds=60),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    state = AttemptService(db).start_or_resume(user.id, qid)
    if state.created:
        response.status_code = 201
    return _attempt_response(state)


@router.get("/{quiz_id}/attempt", response_model=AttemptResponse)
def attempt_status(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(require_student)):
    qid = parse_uuid(quiz_id, what="quiz id")
    state = AttemptService(db).get_status(user.id, qid)
    return _attempt_response(state)


@router.post("/{quiz_id}/auto-save", response_model=AutoSaveResponse)
def auto_save_answer(
    quiz_id: str,
    body: AutoSaveRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_student),
    _: object = rate_limit(key_prefix="quiz_autosave", limit=240, window_seconds=60),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    SubmissionService(db).auto_save(user.id, qid, body.question_id, body.answer)
    return AutoSaveResponse(ok=True)


@router.post("/{quiz_id}/submit", response_model=SubmitResponse)
def submit_quiz(
    quiz_id: str,
    body: SubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_student),
    _: object = rate_limit(key_prefix="quiz_submit", limit=20, window_seconds=60),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    answers = [SubmittedAnswer(question_id=a.question_id, answer=a.answer) for a in body.answers]
    result = SubmissionService(db).submit(user.id, qid, answers)
    return SubmitResponse(result=result_public(result))
