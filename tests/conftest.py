"""Pytest configuration and shared fixtures."""

import itertools
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from focusboard.config import Config, ConfigModel  # noqa: E402
from focusboard.domain import Category, Session, SessionType  # noqa: E402
from focusboard.storage import SQLiteRecordStore  # noqa: E402


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Keep tests from sharing a loaded configuration."""
    Config._instance = None
    yield
    Config._instance = None


@pytest.fixture
def make_session():
    """Factory for completed sessions with sequential ids."""
    ids = itertools.count(1)

    def _make(started_at, minutes, category_id=1, quality=None, interruptions=None,
              completed=True, session_type=SessionType.DEEP_WORK):
        if isinstance(started_at, str):
            started_at = datetime.fromisoformat(started_at)
        return Session(
            id=next(ids),
            category_id=category_id,
            started_at=started_at,
            duration_minutes=minutes,
            completed=completed,
            quality_rating=quality,
            interruption_count=interruptions,
            session_type=session_type,
        )

    return _make


@pytest.fixture
def categories():
    return [
        Category(id=1, name="Deep Work", color="#3B82F6", weekly_goal_minutes=300),
        Category(id=2, name="Learning", color="#10B981", weekly_goal_minutes=120),
        Category(id=3, name="Admin", color="#F59E0B", weekly_goal_minutes=0),
    ]


@pytest.fixture
def config(tmp_path):
    return ConfigModel(data_dir=str(tmp_path / "data"))


@pytest.fixture
def store(tmp_path):
    return SQLiteRecordStore(tmp_path / "focusboard.db")
