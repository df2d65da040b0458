from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from quizdesk.core.crypto import AnswerCipher, IntegrityError, get_answer_cipher
from quizdesk.core.errors import AlreadySubmitted, NotFound, ValidationError
from quizdesk.models.attempt import AnswerKind, QuizAnswer, QuizAttempt, QuizResult
from quizdesk.models.quiz import OPTION_LABELS, Quiz
from quizdesk.services.attempts import AttemptService, as_utc, utcnow
from quizdesk.services.notifications import enqueue_quiz_submitted
from quizdesk.services.quizzes import QuizService
from quizdesk.services.shuffle import ShuffledQuestion, shuffle_for_student


log = logging.getLogger(__name__)

AUTOSAVE_NAMESPACE = uuid.UUID("6f1c2a0e-8d4b-5e7a-9c3f-2b1d0e4a7c55")


def autosave_answer_id(user_id: Any, quiz_id: Any, question_id: Any) -> uuid.UUID:
    return uuid.uuid5(AUTOSAVE_NAMESPACE, f"{user_id}-{quiz_id}-{question_id}")


@dataclass
class SubmittedAnswer:
    question_id: str | None
    answer: str | None = None


@dataclass
class Review:
    result: QuizResult
    quiz: Quiz
    breakdown: list[dict[str, Any]] = field(default_factory=list)


def _parse_question_id(value: Any) -> uuid.UUID:
    raw = str(value or "").strip()
    if not raw:
        raise ValidationError("questionId is required")
    try:
        return uuid.UUID(raw)
    except ValueError as e:
        raise ValidationError("questionId is not a valid id") from e


def _normalize_answer(value: Any) -> str | None:
    if value is None:
        return None
    label = str(value).strip()
    if not label:
        return None
    if label not in OPTION_LABELS:
        raise ValidationError(f"answer must be one of {', '.join(OPTION_LABELS)}")
    return label


def _upsert_insert(db: Session):
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


class SubmissionService:
    def __init__(self, db: Session, cipher: AnswerCipher | None = None):
        self.db = db
        self.cipher = cipher or get_answer_cipher()

    def _seal(self, question_id: Any, answer: str | None) -> str:
        payload = json.dumps({"questionId": str(question_id), "answer": answer}, ensure_ascii=False)
        return self.cipher.encrypt(payload)

    def auto_save(
        self,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        question_id: Any,
        answer: Any,
        *,
        now: datetime | None = None,
    ) -> None:
        """Idempotent upsert of one in-progress answer; no scoring, no attempt check."""
        qid = _parse_question_id(question_id)
        label = _normalize_answer(answer)
        now = as_utc(now or utcnow())

        insert = _upsert_insert(self.db)
        stmt = insert(QuizAnswer).values(
            id=autosave_answer_id(user_id, quiz_id, qid),
            user_id=user_id,
            quiz_id=quiz_id,
            kind=AnswerKind.autosave,
            encrypted_answer=self._seal(qid, label),
            saved_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "encrypted_answer": stmt.excluded.encrypted_answer,
                "saved_at": stmt.excluded.saved_at,
            },
        )
        self.db.execute(stmt)
        self.db.commit()

    def _validate_answers(
        self,
        answers: Iterable[SubmittedAnswer],
        layout: dict[str, ShuffledQuestion],
    ) -> list[tuple[str, str | None]]:
        out: list[tuple[str, str | None]] = []
        seen: set[str] = set()
        for a in answers:
            qid = str(_parse_question_id(a.question_id))
            if qid not in layout:
                raise ValidationError(f"question {qid} does not belong to this quiz")
            if qid in seen:
                raise ValidationError(f"duplicate answer for question {qid}")
            seen.add(qid)
            out.append((qid, _normalize_answer(a.answer)))
        return out

    def submit(
        self,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        answers: Iterable[SubmittedAnswer],
        *,
        now: datetime | None = None,
    ) -> QuizResult:
        quizzes = QuizService(self.db)
        quiz = quizzes.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz not found")

        attempt = AttemptService(self.db).find_attempt(user_id, quiz_id)
        if attempt is None:
            raise NotFound("no attempt found")
        if attempt.submitted:
            raise AlreadySubmitted()

        questions = quizzes.get_canonical_questions(quiz.id)
        # Labels arrive as the student saw them; grade on that same layout.
        layout = {str(q.id): q for q in shuffle_for_student(questions, user_id, quiz.id)}
        normalized = self._validate_answers(answers, layout)

        score = sum(1 for qid, label in normalized if label is not None and label == layout[qid].correct_option)
        total = len(questions)
        now = as_utc(now or utcnow())

        # Claim the attempt inside the same transaction as the writes below: a
        # concurrent submit blocks on the row and then matches nothing.
        claimed = self.db.execute(
            update(QuizAttempt)
            .where(QuizAttempt.id == attempt.id, QuizAttempt.submitted == False)  # noqa: E712
            .values(submitted=True, submitted_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.db.rollback()
            log.info("submit race lost: user_id=%s quiz_id=%s", user_id, quiz_id)
            raise AlreadySubmitted()

        try:
            for qid, label in normalized:
                self.db.add(
                    QuizAnswer(
                        user_id=user_id,
                        quiz_id=quiz.id,
                        kind=AnswerKind.submission,
                        encrypted_answer=self._seal(qid, label),
                        saved_at=now,
                    )
                )

            result = self.db.scalar(
                select(QuizResult).where(QuizResult.user_id == user_id, QuizResult.quiz_id == quiz.id)
            )
            if result is None:
                result = QuizResult(user_id=user_id, quiz_id=quiz.id, score=score, total=total, submitted_at=now)
                self.db.add(result)
            else:
                result.score = score
                result.total = total
                result.submitted_at = now

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(result)
        log.info("quiz submitted: user_id=%s quiz_id=%s score=%s total=%s", user_id, quiz.id, score, total)

        enqueue_quiz_submitted(user_id=user_id, quiz_id=quiz.id, score=score, total=total)
        return result

    def _latest_answers(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> dict[str, str | None]:
        rows = self.db.scalars(
            select(QuizAnswer)
            .where(QuizAnswer.user_id == user_id, QuizAnswer.quiz_id == quiz_id)
            .order_by(QuizAnswer.saved_at.desc())
        )

        chosen: dict[str, str | None] = {}
        for row in rows:
            try:
                payload = json.loads(self.cipher.decrypt(row.encrypted_answer))
            except (IntegrityError, ValueError):
                log.warning("skipping unreadable answer row: answer_id=%s", row.id)
                continue
            if not isinstance(payload, dict):
                continue
            qid = str(payload.get("questionId") or payload.get("question_id") or "")
            if qid and qid not in chosen:
                chosen[qid] = payload.get("answer")
        return chosen

    def reconstruct_for_review(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> Review:
        result = self.db.scalar(
            select(QuizResult).where(QuizResult.user_id == user_id, QuizResult.quiz_id == quiz_id)
        )
        if result is None:
            raise NotFound("result not found")

        quizzes = QuizService(self.db)
        quiz = quizzes.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz not found")

        layout = shuffle_for_student(quizzes.get_canonical_questions(quiz.id), user_id, quiz.id)
        chosen = self._latest_answers(user_id, quiz.id)

        breakdown: list[dict[str, Any]] = []
        for q in layout:
            user_answer = chosen.get(str(q.id))
            item: dict[str, Any] = {
                "question_id": str(q.id),
                "question_text": q.question_text,
                "type": q.type,
                "paragraph": q.paragraph,
                "image_url": q.image_url,
                "latex": q.latex,
                "explanation": q.explanation,
                "correct_option": q.correct_option,
                "user_answer": user_answer or None,
                "is_correct": user_answer is not None and str(user_answer) == q.correct_option,
            }
            item.update(q.options)
            breakdown.append(item)

        return Review(result=result, quiz=quiz, breakdown=breakdown)

    def list_results(self, user_id: uuid.UUID) -> list[tuple[QuizResult, Quiz]]:
        rows = self.db.execute(
            select(QuizResult, Quiz)
            .join(Quiz, Quiz.id == QuizResult.quiz_id)
            .where(QuizResult.user_id == user_id)
            .order_by(Quiz.start_time.desc())
        ).all()
        return [(r, q) for r, q in rows]
