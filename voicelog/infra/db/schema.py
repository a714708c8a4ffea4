"""SQLAlchemy Core table definitions mirrored by the Alembic migrations."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

METADATA = sa.MetaData()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")

ENTRIES_TABLE = sa.Table(
    "entries",
    METADATA,
    sa.Column("entry_id", sa.String(length=36), primary_key=True),
    sa.Column("user_id", sa.String(length=64), nullable=False, index=True),
    sa.Column("audio_url", sa.Text(), nullable=False),
    sa.Column("transcript", sa.Text(), nullable=True),
    sa.Column("duration_seconds", sa.Integer(), nullable=False),
    sa.Column("tags", JSON_TYPE, nullable=False, default=list),
    sa.Column("ai_analysis", JSON_TYPE, nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

ACHIEVEMENTS_TABLE = sa.Table(
    "achievements",
    METADATA,
    sa.Column("achievement_id", sa.String(length=64), primary_key=True),
    sa.Column("name", sa.String(length=128), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("icon", sa.String(length=64), nullable=True),
    sa.Column("criteria", JSON_TYPE, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

USER_ACHIEVEMENTS_TABLE = sa.Table(
    "user_achievements",
    METADATA,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.String(length=64), nullable=False),
    sa.Column(
        "achievement_id",
        sa.String(length=64),
        sa.ForeignKey("achievements.achievement_id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("progress", JSON_TYPE, nullable=False),
    sa.Column("earned_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
)

DAILY_SUMMARIES_TABLE = sa.Table(
    "daily_summaries",
    METADATA,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.String(length=64), nullable=False),
    sa.Column("day", sa.Date(), nullable=False),
    sa.Column("highlight_text", sa.Text(), nullable=False),
    sa.Column("entry_count", sa.Integer(), nullable=False, default=0),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("user_id", "day", name="uq_daily_summary_user_day"),
)
