from quizdesk.models.user import User, UserRole
from quizdesk.models.quiz import Question, QuestionType, Quiz
from quizdesk.models.attempt import AnswerKind, QuizAnswer, QuizAttempt, QuizResult
from quizdesk.models.notification import Notification

__all__ = [
    "User",
    "UserRole",
    "Quiz",
    "Question",
    "QuestionType",
    "QuizAttempt",
    "QuizAnswer",
    "AnswerKind",
    "QuizResult",
    "Notification",
]
