"""
Shared pytest fixtures for backend tests.
Each test gets its own SQLite file so database.py's per-operation connections see the same data.
"""
import pytest
import sqlite3
import sys
import os
from datetime import datetime

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from datetime_patterns import PatternCache, PatternMatcher
from datetime_resolver import DateTimeResolver

# Monday
REFERENCE = datetime(2024, 1, 1, 0, 0, 0)


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE tasks (
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
            last_modified TEXT NOT NULL,
            reminder TEXT
        );

        CREATE TABLE task_parsing_logs (
            id INTEGER PRIMARY KEY,
            input_hash TEXT NOT NULL,
            anonymized_input TEXT NOT NULL,
            parsed_output TEXT NOT NULL DEFAULT '{}',
            parsing_success INTEGER NOT NULL,
            errors TEXT,
            metrics TEXT NOT NULL DEFAULT '{}',
            metadata TEXT NOT NULL DEFAULT '{}',
            timestamp TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def matcher():
    """Matcher with its own cache, isolated from the module-level default."""
    return PatternMatcher(cache=PatternCache(maxsize=64))


@pytest.fixture
def resolver():
    return DateTimeResolver(week_end_day="friday", week_end_hour=17)


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations and runs intake without the LLM.
    """
    from fastapi.testclient import TestClient
    import main
    from notifications import NotificationCenter

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main.intake, "client", None)

    # Fresh notification buffer per test; intake publishes to the same center
    center = NotificationCenter()
    monkeypatch.setattr(main, "notifications", center)
    monkeypatch.setattr(main.intake, "notifications", center)

    with TestClient(main.app) as client:
        yield client
