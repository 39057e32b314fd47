"""Add task_parsing_logs table for parse attempt analysis

Revision ID: 002
Revises: 001
Create Date: 2024-01-01

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS task_parsing_logs (
            id INTEGER PRIMARY KEY,
            input_hash TEXT NOT NULL,
            anonymized_input TEXT NOT NULL,
            parsed_output TEXT NOT NULL DEFAULT '{}',
            parsing_success INTEGER NOT NULL,
            errors TEXT,
            metrics TEXT NOT NULL DEFAULT '{}',
            metadata TEXT NOT NULL DEFAULT '{}',
            timestamp TEXT NOT NULL
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_parsing_logs_input_hash ON task_parsing_logs (input_hash)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_parsing_logs_timestamp ON task_parsing_logs (timestamp)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_parsing_logs_success ON task_parsing_logs (parsing_success)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS task_parsing_logs"))
