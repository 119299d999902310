"""
Pytest configuration and fixtures.

No test needs a live database or network: sessions, HTTP clients and the
OpenAI SDK are mocked.
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from tests.test_constants import TEST_INTERNAL_JOB_TOKEN

# Never inherit a developer .env database or keys
os.environ["DATABASE_URL"] = "postgresql+psycopg://postgres@localhost:5432/dossier_test"
os.environ["INTERNAL_JOB_TOKEN"] = TEST_INTERNAL_JOB_TOKEN


@pytest.fixture
def mock_db() -> MagicMock:
    """Mock SQLAlchemy session."""
    return MagicMock()


@pytest.fixture
def client(mock_db: MagicMock) -> TestClient:
    """FastAPI test client with get_db overridden to yield the mock session."""
    from dossier.db.session import get_db
    from dossier.main import app

    def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)
