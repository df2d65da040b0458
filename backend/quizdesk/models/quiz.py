import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from quizdesk.db.base import Base
from quizdesk.models.user import _utcnow


OPTION_LABELS = ("option1", "option2", "option3", "option4")


class QuestionType(str, enum.Enum):
    text = "text"
    image = "image"
    math = "math"
    comprehension = "comprehension"


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(300), index=True)
    class_name: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quizzes.id"), index=True)

    question_text: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[QuestionType] = mapped_column(Enum(QuestionType), default=QuestionType.text)
    paragraph: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    latex: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    option1: Mapped[str] = mapped_column(Text)
    option2: Mapped[str] = mapped_column(Text)
    option3: Mapped[str] = mapped_column(Text)
    option4: Mapped[str] = mapped_column(Text)
    correct_option: Mapped[str] = mapped_column(String(16))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
