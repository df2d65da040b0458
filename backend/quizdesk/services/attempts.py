from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import exc as sa_exc
from sqlalchemy import select
from sqlalchemy.orm import Session

from quizdesk.core.errors import AlreadySubmitted, ConflictRace, Ended, NotFound, NotStarted
from quizdesk.models.attempt import QuizAttempt
from quizdesk.models.quiz import Quiz


log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def time_left_seconds(end_time: datetime, now: datetime) -> int:
    return max(0, math.floor((as_utc(end_time) - as_utc(now)).total_seconds()))


def attempt_duration_minutes(quiz: Quiz) -> int:
    if quiz.duration_minutes:
        return int(quiz.duration_minutes)
    window = (as_utc(quiz.end_time) - as_utc(quiz.start_time)).total_seconds() / 60
    return int(math.floor(window + 0.5))


def attempt_deadline(quiz: Quiz, start_time: datetime) -> datetime:
    """Deadline fixed once at attempt creation, never past the quiz end."""
    deadline = as_utc(start_time) + timedelta(minutes=attempt_duration_minutes(quiz))
    return min(deadline, as_utc(quiz.end_time))


@dataclass
class AttemptState:
    attempt: QuizAttempt
    time_left_seconds: int
    created: bool = False


class AttemptService:
    def __init__(self, db: Session):
        self.db = db

    def find_attempt(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> QuizAttempt | None:
        return self.db.scalar(
            select(QuizAttempt).where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
        )

    def create_attempt_if_absent(
        self,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        start_time: datetime,
        end_time: datetime,
    ) -> tuple[QuizAttempt, bool]:
        """Insert the attempt, or return the row a concurrent request created first."""
        attempt = QuizAttempt(
            user_id=user_id,
            quiz_id=quiz_id,
            start_time=start_time,
            end_time=end_time,
            submitted=False,
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except sa_exc.IntegrityError:
            self.db.rollback()
            winner = self.find_attempt(user_id, quiz_id)
            if winner is None:
                raise ConflictRace("could not create quiz attempt")
            log.info("attempt create race lost: user_id=%s quiz_id=%s attempt_id=%s", user_id, quiz_id, winner.id)
            return winner, False

        self.db.refresh(attempt)
        log.info("attempt created: user_id=%s quiz_id=%s end_time=%s", user_id, quiz_id, end_time.isoformat())
        return attempt, True

    def start_or_resume(
        self,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        *,
        now: datetime | None = None,
    ) -> AttemptState:
        quiz = self.db.scalar(select(Quiz).where(Quiz.id == quiz_id))
        if quiz is None or not quiz.published:
            raise NotFound("quiz not found")

        now = as_utc(now or utcnow())
        if now < as_utc(quiz.start_time):
            raise NotStarted()
        if now > as_utc(quiz.end_time):
            raise Ended()

        existing = self.find_attempt(user_id, quiz_id)
        if existing is not None:
            if existing.submitted:
                raise AlreadySubmitted()
            # Resume never moves the deadline.
            return AttemptState(attempt=existing, time_left_seconds=time_left_seconds(existing.end_time, now))

        attempt, created = self.create_attempt_if_absent(user_id, quiz_id, now, attempt_deadline(quiz, now))
        if attempt.submitted:
            raise AlreadySubmitted()
        return AttemptState(
            attempt=attempt,
            time_left_seconds=time_left_seconds(attempt.end_time, now),
            created=created,
        )

    def get_status(
        self,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        *,
        now: datetime | None = None,
    ) -> AttemptState:
        attempt = self.find_attempt(user_id, quiz_id)
        if attempt is None:
            raise NotFound("no attempt found")
        if attempt.submitted:
            raise AlreadySubmitted()

        now = as_utc(now or utcnow())
        return AttemptState(attempt=attempt, time_left_seconds=time_left_seconds(attempt.end_time, now))
