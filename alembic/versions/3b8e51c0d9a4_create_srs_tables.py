"""create srs tables

Revision ID: 3b8e51c0d9a4
Revises:
Create Date: 2026-10-17 09:30:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b8e51c0d9a4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "learners",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "question_sets",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("owner_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_question_sets_owner_id", "question_sets", ["owner_id"], unique=False)

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("set_id", sa.String(length=64), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("choices", sa.JSON(), nullable=False),
        sa.Column("correct_answer_index", sa.Integer(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(length=16), nullable=True),
        sa.ForeignKeyConstraint(["set_id"], ["question_sets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_questions_set_id", "questions", ["set_id"], unique=False)

    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("ease_factor", sa.Float(), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=False),
        sa.Column("repetitions", sa.Integer(), nullable=False),
        sa.Column("next_review_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_quality_rating", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["learner_id"], ["learners.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["item_id"], ["questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "item_id", name="uq_schedule_learner_item"),
    )
    op.create_index("ix_schedules_learner_id", "schedules", ["learner_id"], unique=False)
    op.create_index("ix_schedules_item_id", "schedules", ["item_id"], unique=False)
    op.create_index("ix_schedules_next_review_date", "schedules", ["next_review_date"], unique=False)

    op.create_table(
        "attempts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("selected_index", sa.Integer(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("quality_rating", sa.Integer(), nullable=False),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.ForeignKeyConstraint(["learner_id"], ["learners.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["item_id"], ["questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "idempotency_key", name="uq_attempt_learner_key"),
    )
    op.create_index("ix_attempts_learner_id", "attempts", ["learner_id"], unique=False)
    op.create_index("ix_attempts_item_id", "attempts", ["item_id"], unique=False)

    op.create_table(
        "learner_streaks",
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("current_streak_days", sa.Integer(), nullable=False),
        sa.Column("longest_streak_days", sa.Integer(), nullable=False),
        sa.Column("last_practice_date", sa.Date(), nullable=True),
        sa.Column("total_items_learned", sa.Integer(), nullable=False),
        sa.Column("total_items_mastered", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["learner_id"], ["learners.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("learner_id"),
    )

    op.create_table(
        "learner_achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("achievement_type", sa.String(length=64), nullable=False),
        sa.Column("achievement_name", sa.String(length=128), nullable=False),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["learner_id"], ["learners.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "achievement_type", name="uq_learner_achievement"),
    )
    op.create_index(
        "ix_learner_achievements_learner_id",
        "learner_achievements",
        ["learner_id"],
        unique=False,
    )

    op.create_table(
        "practice_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("set_id", sa.String(length=64), nullable=False),
        sa.Column("state_json", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["learner_id"], ["learners.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["set_id"], ["question_sets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "set_id", name="uq_practice_session_learner_set"),
    )
    op.create_index("ix_practice_sessions_learner_id", "practice_sessions", ["learner_id"], unique=False)
    op.create_index("ix_practice_sessions_set_id", "practice_sessions", ["set_id"], unique=False)

    op.create_table(
        "study_plan_templates",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("set_ids", sa.JSON(), nullable=False),
        sa.Column("target_date", sa.Date(), nullable=False),
        sa.Column("strategy", sa.String(length=16), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_study_plan_templates_created_by",
        "study_plan_templates",
        ["created_by"],
        unique=False,
    )

    op.create_table(
        "study_plan_assignments",
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("template_id", sa.String(length=64), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["learner_id"], ["learners.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_id"], ["study_plan_templates.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("learner_id"),
    )
    op.create_index(
        "ix_study_plan_assignments_template_id",
        "study_plan_assignments",
        ["template_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_study_plan_assignments_template_id", table_name="study_plan_assignments")
    op.drop_table("study_plan_assignments")
    op.drop_index("ix_study_plan_templates_created_by", table_name="study_plan_templates")
    op.drop_table("study_plan_templates")
    op.drop_index("ix_practice_sessions_set_id", table_name="practice_sessions")
    op.drop_index("ix_practice_sessions_learner_id", table_name="practice_sessions")
    op.drop_table("practice_sessions")
    op.drop_index("ix_learner_achievements_learner_id", table_name="learner_achievements")
    op.drop_table("learner_achievements")
    op.drop_table("learner_streaks")
    op.drop_index("ix_attempts_item_id", table_name="attempts")
    op.drop_index("ix_attempts_learner_id", table_name="attempts")
    op.drop_table("attempts")
    op.drop_index("ix_schedules_next_review_date", table_name="schedules")
    op.drop_index("ix_schedules_item_id", table_name="schedules")
    op.drop_index("ix_schedules_learner_id", table_name="schedules")
    op.drop_table("schedules")
    op.drop_index("ix_questions_set_id", table_name="questions")
    op.drop_table("questions")
    op.drop_index("ix_question_sets_owner_id", table_name="question_sets")
    op.drop_table("question_sets")
    op.drop_table("learners")
