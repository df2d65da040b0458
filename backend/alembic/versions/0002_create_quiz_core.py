"""create quiz core

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    question_type = postgresql.ENUM("text", "image", "math", "comprehension", name="questiontype", create_type=False)
    answer_kind = postgresql.ENUM("autosave", "submission", name="answerkind", create_type=False)
    question_type.create(bind, checkfirst=True)
    answer_kind.create(bind, checkfirst=True)

    op.create_table(
        "quizzes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("class_name", sa.String(length=100), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("start_time < end_time", name="ck_quizzes_window"),
    )
    op.create_index("ix_quizzes_title", "quizzes", ["title"], unique=False)
    op.create_index("ix_quizzes_class_name", "quizzes", ["class_name"], unique=False)

    op.create_table(
        "questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("type", question_type, nullable=False),
        sa.Column("paragraph", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column("latex", sa.Text(), nullable=True),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("option1", sa.Text(), nullable=False),
        sa.Column("option2", sa.Text(), nullable=False),
        sa.Column("option3", sa.Text(), nullable=False),
        sa.Column("option4", sa.Text(), nullable=False),
        sa.Column("correct_option", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "correct_option IN ('option1', 'option2', 'option3', 'option4')",
            name="ck_questions_correct_option",
        ),
    )
    op.create_index("ix_questions_quiz_id", "questions", ["quiz_id"], unique=False)

    op.create_table(
        "quiz_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "quiz_id", name="uq_quiz_attempts_user_quiz"),
    )
    op.create_index("ix_quiz_attempts_quiz_id", "quiz_attempts", ["quiz_id"], unique=False)
    op.create_index("ix_quiz_attempts_user_id", "quiz_attempts", ["user_id"], unique=False)

    op.create_table(
        "quiz_answers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("kind", answer_kind, nullable=False),
        sa.Column("encrypted_answer", sa.Text(), nullable=False),
        sa.Column("saved_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_quiz_answers_quiz_id", "quiz_answers", ["quiz_id"], unique=False)
    op.create_index("ix_quiz_answers_user_id", "quiz_answers", ["user_id"], unique=False)
    op.create_index("ix_quiz_answers_kind", "quiz_answers", ["kind"], unique=False)
    op.create_index("ix_quiz_answers_saved_at", "quiz_answers", ["saved_at"], unique=False)

    op.create_table(
        "quiz_results",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "quiz_id", name="uq_quiz_results_user_quiz"),
    )
    op.create_index("ix_quiz_results_quiz_id", "quiz_results", ["quiz_id"], unique=False)
    op.create_index("ix_quiz_results_user_id", "quiz_results", ["user_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_type", "notifications", ["type"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_type", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_quiz_results_user_id", table_name="quiz_results")
    op.drop_index("ix_quiz_results_quiz_id", table_name="quiz_results")
    op.drop_table("quiz_results")

    op.drop_index("ix_quiz_answers_saved_at", table_name="quiz_answers")
    op.drop_index("ix_quiz_answers_kind", table_name="quiz_answers")
    op.drop_index("ix_quiz_answers_user_id", table_name="quiz_answers")
    op.drop_index("ix_quiz_answers_quiz_id", table_name="quiz_answers")
    op.drop_table("quiz_answers")

    op.drop_index("ix_quiz_attempts_user_id", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_quiz_id", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")

    op.drop_index("ix_questions_quiz_id", table_name="questions")
    op.drop_table("questions")

    op.drop_index("ix_quizzes_class_name", table_name="quizzes")
    op.drop_index("ix_quizzes_title", table_name="quizzes")
    op.drop_table("quizzes")

    bind = op.get_bind()
    postgresql.ENUM(name="answerkind").drop(bind, checkfirst=True)
    postgresql.ENUM(name="questiontype").drop(bind, checkfirst=True)
