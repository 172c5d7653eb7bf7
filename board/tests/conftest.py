from __future__ import annotations

import os
import tempfile

# Settings are cached, so the environment must be in place before first use.
os.environ["BOARD_PASSWORD_ITERATIONS"] = "1000"
os.environ.setdefault("BOARD_HOME", tempfile.mkdtemp(prefix="board-tests-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from board.config import get_settings
from board.models import Base

get_settings.cache_clear()


@pytest.fixture()
def test_db():
    """Temporary SQLite in-memory database shared across connections via StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, TestSession


@pytest.fixture()
def session(test_db):
    _, TestSession = test_db
    sess = TestSession()
    try:
        yield sess
    finally:
        sess.close()
