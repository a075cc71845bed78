"""
Pytest configuration for todo API tests.

Every test gets its own in-memory SQLite database. The application is
built with ``create_app(database=...)`` so that it never touches the
DATABASE_URL from the environment.
"""

import os
import sys
from pathlib import Path

# --- Environment setup (before ANY app imports) ---
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add project root so `from app.xxx import ...` works
sys.path.insert(0, str(Path(__file__).parent.parent))
# Add tests dir so `from factories import ...` works
sys.path.insert(0, str(Path(__file__).parent))

import pytest

from fastapi.testclient import TestClient

from app.database import Database
from app.main import create_app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def database():
    """In-memory SQLite handle with the todos table created."""
    db = Database("sqlite://")
    db.connect()
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    """Provide a fresh SQLAlchemy session for CRUD tests."""
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(database):
    return create_app(database=database)


@pytest.fixture
def client(app):
    """FastAPI TestClient running the application lifespan."""
    with TestClient(app) as c:
        yield c
