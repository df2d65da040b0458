from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from quizdesk.core.security import require_roles
from quizdesk.db.session import get_db
from quizdesk.models.user import User, UserRole
from quizdesk.routers.quizzes import parse_uuid, quiz_public
from quizdesk.schemas.quiz import (
    QuestionCreateRequest,
    QuestionUpdateRequest,
    QuizCreateRequest,
    QuizPublic,
    QuizQuestionAdmin,
    QuizResultRow,
    QuizResultsResponse,
    QuizUpdateRequest,
)
from quizdesk.services.attempts import as_utc
from quizdesk.services.quizzes import QuizService, canonical_question_dict

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles(UserRole.admin)


@router.post("/quizzes", response_model=QuizPublic, status_code=201)
def create_quiz(body: QuizCreateRequest, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    quiz = QuizService(db).create_quiz(body.model_dump())
    return quiz_public(quiz)


@router.patch("/quizzes/{quiz_id}", response_model=QuizPublic)
def update_quiz(
    quiz_id: str,
    body: QuizUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    quiz = QuizService(db).update_quiz(qid, body.model_dump(exclude_unset=True))
    return quiz_public(quiz)


@router.post("/quizzes/{quiz_id}/publish-now", response_model=QuizPublic)
def publish_quiz_now(quiz_id: str, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    qid = parse_uuid(quiz_id, what="quiz id")
    quiz = QuizService(db).publish_now(qid)
    return quiz_public(quiz)


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(quiz_id: str, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    qid = parse_uuid(quiz_id, what="quiz id")
    QuizService(db).delete_quiz(qid)
    return {"ok": True}


@router.post("/quizzes/{quiz_id}/questions", response_model=QuizQuestionAdmin, status_code=201)
def create_question(
    quiz_id: str,
    body: QuestionCreateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    q = QuizService(db).create_question(qid, body.model_dump())
    return canonical_question_dict(q)


@router.patch("/questions/{question_id}", response_model=QuizQuestionAdmin)
def update_question(
    question_id: str,
    body: QuestionUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    qid = parse_uuid(question_id, what="question id")
    q = QuizService(db).update_question(qid, body.model_dump(exclude_unset=True))
    return canonical_question_dict(q)


@router.delete("/questions/{question_id}")
def delete_question(question_id: str, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    qid = parse_uuid(question_id, what="question id")
    QuizService(db).delete_question(qid)
    return {"ok": True}


@router.get("/quizzes/{quiz_id}/results", response_model=QuizResultsResponse)
def quiz_results(quiz_id: str, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    qid = parse_uuid(quiz_id, what="quiz id")
    rows = QuizService(db).results_for_quiz(qid)
    return QuizResultsResponse(
        quiz_id=str(qid),
        results=[
            QuizResultRow(
                user_id=str(u.id),
                user_name=u.name,
                score=int(r.score),
                total=int(r.total),
                submitted_at=as_utc(r.submitted_at),
            )
            for r, u in rows
        ],
    )
