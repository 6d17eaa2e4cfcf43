"""
Test fixtures for IT Streak.

Provides app, client, auth_client, db and store fixtures with file-based
SQLite, plus ``frozen_today`` for pinning the local calendar day.
"""

from __future__ import annotations

import pytest
from unittest.mock import patch
from datetime import datetime

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

TEST_PASSWORD = "TestPass123"


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "CRON_SECRET": "test-cron-secret",
        "APP_TIMEZONE": "",
    })

    with app.app_context():
        from database import init_db, run_migrations, get_db

        init_db()
        run_migrations()
        app._db_initialized = True

        # Seed test user
        db = get_db()
        db.execute(
            "INSERT INTO users (id, email, display_name, password_hash, daily_goal, "
            "notification_enabled, push_token, created_at) "
            "VALUES (1, 'test@example.com', 'Test Student', ?, 5, 1, 'ExponentPushToken[test-1]', ?)",
            ("pbkdf2:sha256:600000$test$hash", datetime.now().isoformat()),
        )
        db.commit()

        yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def auth_client(app):
    """Authenticated test client (logged in as test user)."""
    from werkzeug.security import generate_password_hash
    from database import get_db

    with app.app_context():
        db = get_db()
        db.execute(
            "UPDATE users SET password_hash = ? WHERE id = 1",
            (generate_password_hash(TEST_PASSWORD),),
        )
        db.commit()

    client = app.test_client()
    with client:
        client.post("/api/auth/login", json={
            "email": "test@example.com",
            "password": TEST_PASSWORD,
        })
        yield client


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()


@pytest.fixture
def store(app):
    """RowStore bound to the test database."""
    with app.app_context():
        from row_store import RowStore
        yield RowStore()


@pytest.fixture
def frozen_today():
    """Pin ``dates.today()``: ``frozen_today("2026-03-10")``. Call again to move the clock."""
    patchers = []

    def _freeze(day: str, hour: int = 12):
        if patchers:
            patchers.pop().stop()
        y, m, d = (int(p) for p in day.split("-"))
        p = patch("dates.local_now", return_value=datetime(y, m, d, hour, 0, 0))
        p.start()
        patchers.append(p)
        return day

    yield _freeze
    for p in patchers:
        p.stop()
