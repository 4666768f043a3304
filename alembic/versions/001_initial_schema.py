"""Initial schema for the elicitation engine.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Session store
    op.create_table(
        "session_records",
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("session_id"),
    )
    op.create_index("ix_session_records_expires", "session_records", ["expires_at"])

    # Question catalog
    op.create_table(
        "questions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("domain", sa.String(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("expected_info_gain", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("options_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "type IN ('pivot', 'followup_a', 'followup_b', 'contextual')",
            name="ck_questions_type",
        ),
        sa.CheckConstraint(
            "expected_info_gain >= 0 AND expected_info_gain <= 1",
            name="ck_questions_info_gain",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_questions_domain_type", "questions", ["domain", "type", "is_active"]
    )

    # Question performance statistics
    op.create_table(
        "question_performance",
        sa.Column("question_id", sa.String(), nullable=False),
        sa.Column("avg_info_gain", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_satisfaction", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["question_id"],
            ["questions.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("question_id"),
    )

    # Recommendation cache
    op.create_table(
        "recommendation_cache",
        sa.Column("fingerprint", sa.String(), nullable=False),
        sa.Column("domain", sa.String(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("origin", sa.String(), nullable=False),
        sa.Column("generated_at", sa.Float(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.Column("hit_count", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("origin IN ('generated', 'fallback')", name="ck_cache_origin"),
        sa.PrimaryKeyConstraint("fingerprint"),
    )
    op.create_index(
        "ix_recommendation_cache_expires", "recommendation_cache", ["expires_at"]
    )

    # Breaker and rate limiter state
    op.create_table(
        "control_state",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("expires_at", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("key"),
    )

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_name", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=True),
        sa.Column("question_id", sa.String(), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_name_created", "events", ["event_name", "created_at"])
    op.create_index("ix_events_session_created", "events", ["session_id", "created_at"])


def downgrade() -> None:
    op.drop_table("events")
    op.drop_table("control_state")
    op.drop_table("recommendation_cache")
    op.drop_table("question_performance")
    op.drop_table("questions")
    op.drop_table("session_records")
