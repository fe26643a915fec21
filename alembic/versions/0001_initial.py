"""Create chat_session and chat_message tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    existing = set(inspect(op.get_bind()).get_table_names())

    if "chat_session" not in existing:
        op.create_table(
            "chat_session",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("session_id", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
            sqlite_autoincrement=True,
        )
        op.create_index("ix_chat_session_session_id", "chat_session", ["session_id"], unique=True)
        op.create_index("ix_chat_session_last_activity_at", "chat_session", ["last_activity_at"])

    if "chat_message" not in existing:
        op.create_table(
            "chat_message",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "session_id",
                sa.Text(),
                sa.ForeignKey("chat_session.session_id"),
                nullable=False,
            ),
            sa.Column("seq", sa.Integer(), nullable=False),
            sa.Column("role", sa.Text(), nullable=False),
            sa.Column("text", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("confidence", sa.Float(), nullable=True),
            sa.Column("provider", sa.Text(), nullable=True),
            sa.Column("model", sa.Text(), nullable=True),
            sa.Column("meta_json", sa.Text(), nullable=True),
            sa.UniqueConstraint("session_id", "seq", name="uq_chat_message_session_seq"),
            sqlite_autoincrement=True,
        )
        op.create_index("ix_chat_message_session_id", "chat_message", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_chat_message_session_id", table_name="chat_message")
    op.drop_table("chat_message")
    op.drop_index("ix_chat_session_last_activity_at", table_name="chat_session")
    op.drop_index("ix_chat_session_session_id", table_name="chat_session")
    op.drop_table("chat_session")
