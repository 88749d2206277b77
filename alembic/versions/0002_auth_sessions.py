"""Bearer sessions and message history index

Revision ID: 0002_auth_sessions
Revises: 0001_initial_schema
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_auth_sessions"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def _has_table(insp: sa.Inspector, table: str) -> bool:
    return table in insp.get_table_names()


def _ensure_index(table: str, name: str, columns: list[str], unique: bool = False) -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing = {idx["name"] for idx in insp.get_indexes(table)}
    if name not in existing:
        op.create_index(name, table, columns, unique=unique)


def _drop_index_if_exists(table: str, name: str) -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing = {idx["name"] for idx in insp.get_indexes(table)}
    if name in existing:
        op.drop_index(name, table_name=table)


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not _has_table(insp, "auth_sessions"):
        op.create_table(
            "auth_sessions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("token", sa.String(length=128), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
    _ensure_index("auth_sessions", "ix_auth_sessions_token", ["token"], unique=True)
    _ensure_index("auth_sessions", "ix_auth_sessions_user_id", ["user_id"])
    _ensure_index("messages", "ix_messages_project_timestamp", ["project_id", "timestamp"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    _drop_index_if_exists("messages", "ix_messages_project_timestamp")
    if _has_table(insp, "auth_sessions"):
        op.drop_table("auth_sessions")
