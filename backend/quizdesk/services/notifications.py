from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from quizdesk.core.config import settings
from quizdesk.core.errors import NotFound
from quizdesk.core.queue import get_queue
from quizdesk.db import session as session_module
from quizdesk.models.notification import Notification
from quizdesk.models.user import User, UserRole


log = logging.getLogger(__name__)


def notify(
    db: Session,
    *,
    user_id: uuid.UUID,
    title: str,
    message: str,
    type: str,
    entity_id: uuid.UUID | None = None,
) -> Notification:
    n = Notification(user_id=user_id, title=title, message=message, type=type, entity_id=entity_id)
    db.add(n)
    return n


def notify_quiz_submitted_job(*, user_id: str, quiz_id: str, score: int, total: int) -> dict:
    """Student confirmation plus best-effort admin fan-out for one submission."""
    uid = uuid.UUID(str(user_id))
    qid = uuid.UUID(str(quiz_id))

    notified_admins = 0
    with session_module.SessionLocal() as db:
        notify(
            db,
            user_id=uid,
            title="Quiz submitted",
            message=f"Your result: {score}/{total}. View your result.",
            type="result",
            entity_id=qid,
        )
        db.commit()

        admin_ids = list(db.scalars(select(User.id).where(User.role == UserRole.admin)))
        for admin_id in admin_ids:
            try:
                notify(
                    db,
                    user_id=admin_id,
                    title="Quiz submitted",
                    message=f"A quiz was submitted (quiz ID: {qid}).",
                    type="admin_action",
                    entity_id=qid,
                )
                db.commit()
                notified_admins += 1
            except Exception:
                db.rollback()
                log.exception("admin notification failed: admin_id=%s quiz_id=%s", admin_id, qid)

    return {"ok": True, "user_id": str(uid), "quiz_id": str(qid), "notified_admins": notified_admins}


def notify_quiz_published_job(*, quiz_id: str, class_name: str | None, title: str) -> dict:
    """Tell the students who can see a quiz that it is open."""
    qid = uuid.UUID(str(quiz_id))

    with session_module.SessionLocal() as db:
        stmt = select(User.id).where(User.role == UserRole.student)
        if class_name:
            stmt = stmt.where(or_(User.class_name == class_name, User.class_name.is_(None)))
        student_ids = list(db.scalars(stmt))
        for sid in student_ids:
            notify(
                db,
                user_id=sid,
                title="New quiz available",
                message=f'"{title}" is open now.',
                type="quiz",
                entity_id=qid,
            )
        db.commit()

    return {"ok": True, "quiz_id": str(qid), "notified_students": len(student_ids)}


def _enqueue(fn, *, what: str, **kwargs) -> str | None:
    try:
        q = get_queue(str(settings.rq_queue_notifications))
        job = q.enqueue(
            fn,
            **kwargs,
            job_timeout=int(settings.notification_job_timeout_seconds),
            result_ttl=60 * 60,
            failure_ttl=60 * 60 * 24,
        )
    except Exception:
        log.exception("failed to enqueue %s notifications: %s", what, kwargs)
        return None
    return str(getattr(job, "id", "") or "") or None


def enqueue_quiz_submitted(*, user_id: uuid.UUID, quiz_id: uuid.UUID, score: int, total: int) -> str | None:
    """Publish the submission notifications; never raises."""
    return _enqueue(
        notify_quiz_submitted_job,
        what="submission",
        user_id=str(user_id),
        quiz_id=str(quiz_id),
        score=int(score),
        total=int(total),
    )


def enqueue_quiz_published(*, quiz_id: uuid.UUID, class_name: str | None, title: str) -> str | None:
    return _enqueue(
        notify_quiz_published_job,
        what="publish",
        quiz_id=str(quiz_id),
        class_name=class_name,
        title=str(title),
    )


# Inbox


def list_notifications(
    db: Session,
    user_id: uuid.UUID,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read == False)  # noqa: E712
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(int(limit))
    return list(db.scalars(stmt))


def count_unread(db: Session, user_id: uuid.UUID) -> int:
    n = db.scalar(
        select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
    )
    return int(n or 0)


def mark_read(db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
    res = db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise NotFound("notification not found")
    db.commit()


def mark_all_read(db: Session, user_id: uuid.UUID) -> int:
    res = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return int(res.rowcount or 0)
