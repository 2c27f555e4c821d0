"""Create consulting_sessions table.

Revision ID: 001_consulting_sessions
Revises:
Create Date: 2026-10-18 00:00:00.000000

One row per consultation: transcript and findings as JSONB arrays, the
final report, and the workflow state the orchestrator advances.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID

# revision identifiers, used by Alembic.
revision: str = "001_consulting_sessions"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the consulting_sessions table."""
    op.create_table(
        "consulting_sessions",
        sa.Column("id", PGUUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("chat_history", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("company_info", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "research_results", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column("report_final", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "current_state", sa.String(32), nullable=False, server_default="WAITING_FOR_INFO"
        ),
        sa.Column("research_counter", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_consulting_sessions_user_id",
        "consulting_sessions",
        ["user_id"],
    )
    # Sessions a client may still be waiting on
    op.create_index(
        "ix_consulting_sessions_active",
        "consulting_sessions",
        ["current_state"],
        postgresql_where=sa.text("current_state <> 'FINISHED'"),
    )


def downgrade() -> None:
    """Drop the consulting_sessions table."""
    op.drop_index("ix_consulting_sessions_active", table_name="consulting_sessions")
    op.drop_index("ix_consulting_sessions_user_id", table_name="consulting_sessions")
    op.drop_table("consulting_sessions")
