"""
Pytest fixtures for warehouse tracker backend tests.

Provides the application on an in-memory SQLite database, a test client,
per-test table truncation, and a handle on the notification recorder.
"""

from datetime import datetime

import pytest

from warehouse_tracker import create_app
from warehouse_tracker.extensions import db, notifier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def recorder(app):
    """Notification recorder, emptied for each test."""
    notifier.recorder.clear()
    return notifier.recorder


@pytest.fixture
def at():
    """Business timestamp on day N of a fixed past week (day 1 = Mon 2025-03-03)."""
    def _at(day: int, hour: int = 9, minute: int = 0) -> datetime:
        return datetime(2025, 3, 2 + day, hour, minute)
    return _at
