from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from quizdesk.schemas.attempt import ResultPublic


class MyResultRow(BaseModel):
    id: str
    quiz_id: str
    title: str
    score: int
    total: int
    start_time: datetime | None = None
    submitted_at: datetime


class MyResultsResponse(BaseModel):
    results: list[MyResultRow]


class ReviewQuiz(BaseModel):
    id: str
    title: str


class ReviewItem(BaseModel):
    question_id: str
    question_text: str
    type: str
    paragraph: str | None = None
    image_url: str | None = None
    latex: str | None = None
    explanation: str | None = None
    option1: str
    option2: str
    option3: str
    option4: str
    correct_option: str
    user_answer: str | None = None
    is_correct: bool


class ResultDetailResponse(BaseModel):
    result: ResultPublic
    quiz: ReviewQuiz
    breakdown: list[ReviewItem]
