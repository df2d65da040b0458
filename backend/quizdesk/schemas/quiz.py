from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from quizdesk.models.quiz import OPTION_LABELS, QuestionType


class QuizPublic(BaseModel):
    id: str
    title: str
    class_name: str | None
    start_time: datetime
    end_time: datetime
    duration_minutes: int | None
    published: bool


class QuizListResponse(BaseModel):
    quizzes: list[QuizPublic]


class QuizQuestionPublic(BaseModel):
    """Question as rendered to a student: display labels, no answer key."""

    id: str
    question_text: str
    type: str
    paragraph: str | None = None
    image_url: str | None = None
    latex: str | None = None
    option1: str
    option2: str
    option3: str
    option4: str


class QuizQuestionAdmin(QuizQuestionPublic):
    explanation: str | None = None
    correct_option: str


class QuizDetailResponse(BaseModel):
    quiz: QuizPublic
    questions: list[QuizQuestionAdmin] | list[QuizQuestionPublic]
    attempted: bool | None = None


class QuizCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    class_name: str | None = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int | None = Field(default=None, gt=0)
    published: bool = False


class QuizUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    class_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    published: bool | None = None


class _QuestionFields(BaseModel):
    @field_validator("option1", "option2", "option3", "option4", check_fields=False)
    @classmethod
    def _option_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("option must not be empty")
        return v

    @field_validator("correct_option", check_fields=False)
    @classmethod
    def _correct_is_label(cls, v: str | None) -> str | None:
        if v is not None and v not in OPTION_LABELS:
            raise ValueError(f"correct_option must be one of {', '.join(OPTION_LABELS)}")
        return v


class QuestionCreateRequest(_QuestionFields):
    question_text: str = Field(min_length=1)
    type: QuestionType = QuestionType.text
    paragraph: str | None = None
    image_url: str | None = None
    latex: str | None = None
    explanation: str | None = None
    option1: str
    option2: str
    option3: str
    option4: str
    correct_option: str


class QuestionUpdateRequest(_QuestionFields):
    question_text: str | None = Field(default=None, min_length=1)
    type: QuestionType | None = None
    paragraph: str | None = None
    image_url: str | None = None
    latex: str | None = None
    explanation: str | None = None
    option1: str | None = None
    option2: str | None = None
    option3: str | None = None
    option4: str | None = None
    correct_option: str | None = None


class QuizResultRow(BaseModel):
    user_id: str
    user_name: str
    score: int
    total: int
    submitted_at: datetime


class QuizResultsResponse(BaseModel):
    quiz_id: str
    results: list[QuizResultRow]
