from __future__ import annotations


class QuizError(Exception):
    """Base for domain errors raised by services.

    The app factory renders these into the standard error envelope using
    `status_code` and `error_code`; `extra` is merged into the payload.
    """

    status_code: int = 400
    error_code: str = "bad_request"
    default_message: str = "request failed"

    def __init__(self, message: str | None = None, **extra: object) -> None:
        self.message = str(message or self.default_message)
        self.extra = dict(extra)
        super().__init__(self.message)


class NotFound(QuizError):
    status_code = 404
    error_code = "not_found"
    default_message = "not found"


class NotStarted(QuizError):
    status_code = 400
    error_code = "quiz_not_started"
    default_message = "quiz has not started yet"


class Ended(QuizError):
    status_code = 400
    error_code = "quiz_ended"
    default_message = "quiz has ended"


class Forbidden(QuizError):
    status_code = 403
    error_code = "forbidden"
    default_message = "forbidden"


class AlreadySubmitted(Forbidden):
    error_code = "already_submitted"
    default_message = "you have already submitted this quiz"

    def __init__(self, message: str | None = None, **extra: object) -> None:
        extra.setdefault("attempted", True)
        super().__init__(message, **extra)


class ValidationError(QuizError):
    status_code = 400
    error_code = "validation_error"
    default_message = "invalid input"


class Conflict(QuizError):
    status_code = 409
    error_code = "conflict"
    default_message = "conflict"


class ConflictRace(Conflict):
    error_code = "conflict_race"
    default_message = "concurrent update, retry the request"
