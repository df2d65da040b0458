from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizdesk.core.security import get_current_user
from quizdesk.db.session import get_db
from quizdesk.models.user import User
from quizdesk.routers.quizzes import parse_uuid, require_student, result_public
from quizdesk.schemas.notification import MarkReadResponse, NotificationListResponse, NotificationPublic
from quizdesk.schemas.result import MyResultRow, MyResultsResponse, ResultDetailResponse, ReviewQuiz
from quizdesk.services import notifications as notification_service
from quizdesk.services.attempts import as_utc
from quizdesk.services.submissions import SubmissionService

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/results", response_model=MyResultsResponse)
def my_results(db: Session = Depends(get_db), user: User = Depends(require_student)):
    rows = SubmissionService(db).list_results(user.id)
    return MyResultsResponse(
        results=[
            MyResultRow(
                id=str(r.id),
                quiz_id=str(r.quiz_id),
                title=q.title or "Quiz",
                score=int(r.score),
                total=int(r.total),
                start_time=as_utc(q.start_time) if q.start_time else None,
                submitted_at=as_utc(r.submitted_at),
            )
            for r, q in rows
        ]
    )


@router.get("/results/{quiz_id}", response_model=ResultDetailResponse)
def my_result_detail(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(require_student)):
    qid = parse_uuid(quiz_id, what="quiz id")
    review = SubmissionService(db).reconstruct_for_review(user.id, qid)
    return {
        "result": result_public(review.result),
        "quiz": ReviewQuiz(id=str(review.quiz.id), title=review.quiz.title),
        "breakdown": review.breakdown,
    }


@router.get("/notifications", response_model=NotificationListResponse)
def my_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = notification_service.list_notifications(db, user.id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        notifications=[
            NotificationPublic(
                id=str(n.id),
                title=n.title,
                message=n.message or "",
                type=n.type,
                entity_id=str(n.entity_id) if n.entity_id else None,
                read=bool(n.read),
                created_at=as_utc(n.created_at),
            )
            for n in rows
        ],
        unread=notification_service.count_unread(db, user.id),
    )


@router.patch("/notifications/read-all", response_model=MarkReadResponse)
def mark_all_notifications_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = notification_service.mark_all_read(db, user.id)
    return MarkReadResponse(updated=n)


@router.patch("/notifications/{notification_id}/read", response_model=MarkReadResponse)
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    nid = parse_uuid(notification_id, what="notification id")
    notification_service.mark_read(db, user.id, nid)
    return MarkReadResponse()
