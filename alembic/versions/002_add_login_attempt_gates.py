"""Add login attempt gates

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "login_attempt_gates",
        sa.Column("attempt_key", sa.String(320), nullable=False),
        sa.Column("touched_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("attempt_key"),
    )
    op.create_index(
        "ix_login_attempt_gates_touched_at", "login_attempt_gates", ["touched_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_login_attempt_gates_touched_at", table_name="login_attempt_gates")
    op.drop_table("login_attempt_gates")
