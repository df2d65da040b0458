from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from quizdesk.core.errors import Conflict, NotFound, ValidationError
from quizdesk.models.attempt import QuizAnswer, QuizAttempt, QuizResult
from quizdesk.models.quiz import OPTION_LABELS, Question, Quiz
from quizdesk.models.user import User, UserRole
from quizdesk.services.attempts import as_utc, utcnow
from quizdesk.services.notifications import enqueue_quiz_published
from quizdesk.services.shuffle import shuffle_for_student


log = logging.getLogger(__name__)

QUIZ_FIELDS = ("title", "class_name", "start_time", "end_time", "duration_minutes", "published")
QUESTION_FIELDS = (
    "question_text",
    "type",
    "paragraph",
    "image_url",
    "latex",
    "explanation",
    *OPTION_LABELS,
    "correct_option",
)
NULLABLE_FIELDS = {"class_name", "duration_minutes", "paragraph", "image_url", "latex", "explanation"}


@dataclass
class QuizForTaking:
    quiz: Quiz
    questions: list[dict[str, Any]]
    attempted: bool | None = None


def canonical_question_dict(q: Question) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": str(q.id),
        "question_text": q.question_text,
        "type": getattr(q.type, "value", str(q.type)),
        "paragraph": q.paragraph,
        "image_url": q.image_url,
        "latex": q.latex,
        "explanation": q.explanation,
        "correct_option": q.correct_option,
    }
    for label in OPTION_LABELS:
        out[label] = getattr(q, label)
    return out


def is_active(quiz: Quiz, now: datetime) -> bool:
    return as_utc(quiz.start_time) <= as_utc(now) <= as_utc(quiz.end_time)


def _check_window(start_time: datetime, end_time: datetime, duration_minutes: int | None) -> None:
    if as_utc(start_time) >= as_utc(end_time):
        raise ValidationError("start_time must be before end_time")
    if duration_minutes is not None and int(duration_minutes) <= 0:
        raise ValidationError("duration_minutes must be positive")


def _apply(row: object, fields: tuple[str, ...], changes: dict[str, Any]) -> None:
    for key in fields:
        if key not in changes:
            continue
        if changes[key] is None and key not in NULLABLE_FIELDS:
            continue
        setattr(row, key, changes[key])


def _check_question(q: Question) -> None:
    for label in OPTION_LABELS:
        if not str(getattr(q, label, "") or "").strip():
            raise ValidationError(f"{label} must not be empty")
    if q.correct_option not in OPTION_LABELS:
        raise ValidationError(f"correct_option must be one of {', '.join(OPTION_LABELS)}")


class QuizService:
    def __init__(self, db: Session):
        self.db = db

    def get_quiz(self, quiz_id: uuid.UUID) -> Quiz | None:
        return self.db.scalar(select(Quiz).where(Quiz.id == quiz_id))

    def get_canonical_questions(self, quiz_id: uuid.UUID) -> list[Question]:
        return list(
            self.db.scalars(
                select(Question).where(Question.quiz_id == quiz_id).order_by(Question.created_at, Question.id)
            )
        )

    def has_attempts(self, quiz_id: uuid.UUID) -> bool:
        n = self.db.scalar(select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id))
        return bool(n)

    def is_attempted(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> bool:
        submitted = self.db.scalar(
            select(QuizAttempt.submitted).where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
        )
        if submitted:
            return True
        result_id = self.db.scalar(
            select(QuizResult.id).where(QuizResult.user_id == user_id, QuizResult.quiz_id == quiz_id)
        )
        return result_id is not None

    def list_quizzes(self, user: User) -> list[Quiz]:
        stmt = select(Quiz).order_by(Quiz.start_time.desc())
        if user.role != UserRole.admin:
            stmt = stmt.where(Quiz.published == True)  # noqa: E712
            if user.class_name:
                stmt = stmt.where(or_(Quiz.class_name == user.class_name, Quiz.class_name.is_(None)))
        return list(self.db.scalars(stmt))

    def quiz_for_taking(self, user: User, quiz_id: uuid.UUID) -> QuizForTaking:
        quiz = self.get_quiz(quiz_id)
        is_admin = user.role == UserRole.admin
        if quiz is None or (not is_admin and not quiz.published):
            raise NotFound("quiz not found")

        questions = self.get_canonical_questions(quiz.id)
        if is_admin:
            return QuizForTaking(quiz=quiz, questions=[canonical_question_dict(q) for q in questions])

        view = shuffle_for_student(questions, user.id, quiz.id)
        return QuizForTaking(
            quiz=quiz,
            questions=[q.public_dict() for q in view],
            attempted=self.is_attempted(user.id, quiz.id),
        )

    # Administration

    def create_quiz(self, data: dict[str, Any]) -> Quiz:
        _check_window(data["start_time"], data["end_time"], data.get("duration_minutes"))
        quiz = Quiz(**{k: data[k] for k in QUIZ_FIELDS if k in data})
        self.db.add(quiz)
        self.db.commit()
        self.db.refresh(quiz)
        log.info("quiz created: quiz_id=%s title=%r", quiz.id, quiz.title)
        return quiz

    def update_quiz(self, quiz_id: uuid.UUID, changes: dict[str, Any]) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz not found")

        _apply(quiz, QUIZ_FIELDS, changes)
        try:
            _check_window(quiz.start_time, quiz.end_time, quiz.duration_minutes)
        except ValidationError:
            self.db.rollback()
            raise

        self.db.commit()
        self.db.refresh(quiz)
        return quiz

    def publish_now(self, quiz_id: uuid.UUID, *, now: datetime | None = None) -> Quiz:
        """Publish and open the quiz at `now`; a window that already ended is reopened for an hour."""
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz not found")
        if not self.get_canonical_questions(quiz.id):
            raise ValidationError("quiz must have at least one question to be published")

        now = as_utc(now or utcnow())
        quiz.published = True
        if as_utc(quiz.start_time) > now:
            quiz.start_time = now
        if as_utc(quiz.end_time) <= now:
            quiz.end_time = now + timedelta(hours=1)
        self.db.commit()
        self.db.refresh(quiz)
        log.info("quiz published now: quiz_id=%s", quiz.id)

        enqueue_quiz_published(quiz_id=quiz.id, class_name=quiz.class_name, title=quiz.title)
        return quiz

    def delete_quiz(self, quiz_id: uuid.UUID, *, now: datetime | None = None) -> None:
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz not found")
        if is_active(quiz, now or utcnow()):
            raise Conflict("cannot delete a quiz while it is active")

        self.db.execute(delete(QuizAnswer).where(QuizAnswer.quiz_id == quiz.id))
        self.db.execute(delete(QuizResult).where(QuizResult.quiz_id == quiz.id))
        self.db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id == quiz.id))
        self.db.execute(delete(Question).where(Question.quiz_id == quiz.id))
        self.db.delete(quiz)
        self.db.commit()
        log.info("quiz deleted: quiz_id=%s", quiz_id)

    def _ensure_questions_editable(self, quiz_id: uuid.UUID) -> None:
        # The question set is frozen once any attempt exists.
        if self.has_attempts(quiz_id):
            raise Conflict("quiz already has attempts; questions are locked")

    def create_question(self, quiz_id: uuid.UUID, data: dict[str, Any]) -> Question:
        if self.get_quiz(quiz_id) is None:
            raise NotFound("quiz not found")
        self._ensure_questions_editable(quiz_id)

        q = Question(quiz_id=quiz_id, **{k: data[k] for k in QUESTION_FIELDS if k in data})
        _check_question(q)
        self.db.add(q)
        self.db.commit()
        self.db.refresh(q)
        return q

    def update_question(self, question_id: uuid.UUID, changes: dict[str, Any]) -> Question:
        q = self.db.scalar(select(Question).where(Question.id == question_id))
        if q is None:
            raise NotFound("question not found")
        self._ensure_questions_editable(q.quiz_id)

        _apply(q, QUESTION_FIELDS, changes)
        try:
            _check_question(q)
        except ValidationError:
            self.db.rollback()
            raise

        self.db.commit()
        self.db.refresh(q)
        return q

    def delete_question(self, question_id: uuid.UUID) -> None:
        q = self.db.scalar(select(Question).where(Question.id == question_id))
        if q is None:
            raise NotFound("question not found")
        self._ensure_questions_editable(q.quiz_id)

        self.db.delete(q)
        self.db.commit()

    def results_for_quiz(self, quiz_id: uuid.UUID) -> list[tuple[QuizResult, User]]:
        if self.get_quiz(quiz_id) is None:
            raise NotFound("quiz not found")
        rows = self.db.execute(
            select(QuizResult, User)
            .join(User, User.id == QuizResult.user_id)
            .where(QuizResult.quiz_id == quiz_id)
            .order_by(QuizResult.score.desc(), QuizResult.submitted_at.asc())
        ).all()
        return [(r, u) for r, u in rows]
