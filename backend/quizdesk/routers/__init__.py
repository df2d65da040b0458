from quizdesk.routers import admin, auth, health, me, quizzes

__all__ = [
    "admin",
    "auth",
    "health",
    "me",
    "quizzes",
]
