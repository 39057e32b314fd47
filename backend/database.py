import sqlite3
import json
import os
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

from models import Task

DATABASE_PATH = os.getenv("DATABASE_PATH", "tasks.db")

# Columns stored as JSON text
JSON_FIELDS = ("tags", "dependencies", "metadata")

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess

    # Run alembic upgrade from the backend directory against the same file we connect to
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    env = {**os.environ, "DATABASE_PATH": os.path.abspath(DATABASE_PATH)}
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        env=env,
        check=True
    )

def _loads(value, default):
    if value is None or value == "":
        return default
    return json.loads(value)

def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    keys = row.keys()
    # Treat empty string as None for recurrence
    recurrence = row["recurrence"]
    if recurrence == "":
        recurrence = None
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        priority=row["priority"],
        priority_reasoning=row["priority_reasoning"],
        status=row["status"],
        due_date=row["due_date"],
        start_date=row["start_date"],
        completion_date=row["completion_date"],
        reminder=row["reminder"] if "reminder" in keys else None,
        recurrence=recurrence,
        tags=_loads(row["tags"], []),
        dependencies=_loads(row["dependencies"], []),
        metadata=_loads(row["metadata"], {}),
        created_at=row["created_at"],
        last_modified=row["last_modified"],
    )


def get_all_tasks() -> list[Task]:
    with get_db() as conn:
        rows = conn.execute("""
            SELECT * FROM tasks
            ORDER BY
                CASE WHEN due_date IS NULL THEN 1 ELSE 0 END,
                due_date,
                created_at
        """).fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_db(task_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

def create_task_db(
    task_id: str,
    title: str,
    description: str = "",
    priority: str = "Medium",
    priority_reasoning: Optional[str] = None,
    due_date: Optional[str] = None,
    start_date: Optional[str] = None,
    recurrence: Optional[str] = None,
    reminder: Optional[str] = None,
    tags: Optional[list[str]] = None,
    dependencies: Optional[list[str]] = None,
    metadata: Optional[dict] = None
) -> Task:
    """Create a task.
    due_date, start_date and reminder are ISO datetime strings.
    recurrence is a rule string such as "daily" or "weekly:TUE,THU".
    """
    created_at = datetime.now().isoformat()
    tags = tags or []
    dependencies = dependencies or []
    metadata = metadata or {}

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, title, description, priority, priority_reasoning, status, due_date, start_date,
                reminder, recurrence, tags, dependencies, metadata, created_at, last_modified)
               VALUES (?, ?, ?, ?, ?, 'TODO', ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (task_id, title, description, priority, priority_reasoning, due_date, start_date,
             reminder, recurrence, json.dumps(tags), json.dumps(dependencies), json.dumps(metadata),
             created_at, created_at)
        )
        conn.commit()

    return Task(
        id=task_id,
        title=title,
        description=description,
        priority=priority,
        priority_reasoning=priority_reasoning,
        status="TODO",
        due_date=due_date,
        start_date=start_date,
        reminder=reminder,
        recurrence=recurrence,
        tags=tags,
        dependencies=dependencies,
        metadata=metadata,
        created_at=created_at,
        last_modified=created_at,
    )

def update_task_db(task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.
    Moving a task to COMPLETED stamps completion_date.

    Args:
        task_id: Task ID to update
        **updates: Field names and values to update (title, status, due_date, recurrence, tags, ...)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        # Filter updates: only include fields that differ from current values
        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "created_at", "last_modified"):
                continue
            if field in JSON_FIELDS:
                new_value = json.dumps(new_value)
            if new_value != row[field]:
                changes[field] = new_value

        if changes.get("status") == "COMPLETED":
            changes["completion_date"] = datetime.now().isoformat()
        elif "status" in changes and row["status"] == "COMPLETED":
            changes["completion_date"] = None

        # Execute UPDATE only if there are actual changes
        if changes:
            changes["last_modified"] = datetime.now().isoformat()
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def delete_task_db(task_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        return cursor.rowcount > 0

def find_task_by_title_db(title: str) -> Optional[Task]:
    """Find a task by partial title match (case-insensitive)."""
    title_lower = title.lower()
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM tasks").fetchall()
        for row in rows:
            if title_lower in row["title"].lower():
                return _row_to_task(row)
    return None

# Parsing log operations
def create_parsing_log_db(record: dict) -> int:
    """Insert a validated parsing log record (see parsing_log.build_parsing_log). Returns its id."""
    with get_db() as conn:
        cursor = conn.execute(
            """INSERT INTO task_parsing_logs
               (input_hash, anonymized_input, parsed_output, parsing_success, errors, metrics, metadata, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record["input_hash"],
                record["anonymized_input"],
                json.dumps(record["parsed_output"]),
                int(record["parsing_success"]),
                json.dumps(record.get("errors")) if record.get("errors") is not None else None,
                json.dumps(record["metrics"]),
                json.dumps(record["metadata"]),
                record.get("timestamp") or datetime.now().isoformat(),
            )
        )
        conn.commit()
        return cursor.lastrowid

def get_parsing_logs_db(since: Optional[str] = None) -> list[dict]:
    """Get parsing logs, optionally only those at or after `since` (ISO datetime)."""
    query = "SELECT * FROM task_parsing_logs"
    params: tuple = ()
    if since:
        query += " WHERE timestamp >= ?"
        params = (since,)
    query += " ORDER BY timestamp"
    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [
        {
            "id": row["id"],
            "input_hash": row["input_hash"],
            "anonymized_input": row["anonymized_input"],
            "parsed_output": _loads(row["parsed_output"], {}),
            "parsing_success": bool(row["parsing_success"]),
            "errors": _loads(row["errors"], None),
            "metrics": _loads(row["metrics"], {}),
            "metadata": _loads(row["metadata"], {}),
            "timestamp": row["timestamp"],
        }
        for row in rows
    ]
