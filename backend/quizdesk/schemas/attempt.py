from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class AttemptPublic(BaseModel):
    id: str
    quiz_id: str
    start_time: datetime
    end_time: datetime
    submitted: bool


class AttemptResponse(BaseModel):
    attempt: AttemptPublic
    time_left_seconds: int


class AutoSaveRequest(BaseModel):
    # Missing ids are reported by the service as a validation error.
    question_id: str | None = Field(default=None, validation_alias=AliasChoices("question_id", "questionId"))
    answer: str | None = None


class AutoSaveResponse(BaseModel):
    ok: bool = True


class SubmitAnswer(BaseModel):
    question_id: str | None = Field(default=None, validation_alias=AliasChoices("question_id", "questionId"))
    answer: str | None = None


class SubmitRequest(BaseModel):
    answers: list[SubmitAnswer] = Field(default_factory=list)


class ResultPublic(BaseModel):
    id: str
    quiz_id: str
    score: int
    total: int
    submitted_at: datetime


class SubmitResponse(BaseModel):
    result: ResultPublic
