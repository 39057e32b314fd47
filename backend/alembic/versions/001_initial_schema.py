"""Initial schema - tasks table

Revision ID: 001
Revises: None
Create Date: 2024-01-01

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL DEFAULT 'New Task',
            description TEXT,
            priority TEXT NOT NULL DEFAULT 'Medium',
            priority_reasoning TEXT,
            status TEXT NOT NULL DEFAULT 'TODO',
            due_date TEXT,
            start_date TEXT,
            completion_date TEXT,
            recurrence TEXT,
            tags TEXT NOT NULL DEFAULT '[]',
            dependencies TEXT NOT NULL DEFAULT '[]',
            metadata TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL,
            last_modified TEXT NOT NULL
        )
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
