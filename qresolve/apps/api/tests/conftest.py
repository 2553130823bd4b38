"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

# Plain log output under pytest (caplog captures records either way)
os.environ.setdefault("QRESOLVE_JSON_LOGS", "false")

import pytest
from fastapi.testclient import TestClient

from qresolve_api.backend import get_backend
from qresolve_api.db.repositories import Repositories
from qresolve_api.main import app
from tests.fakes import FakeBackend

TEST_APP_BASE_URL = "https://app.qresolve.test"


@pytest.fixture(autouse=True)
def app_env(monkeypatch):
    """Deterministic environment for every test."""
    monkeypatch.setenv("QRESOLVE_ENV", "test")
    monkeypatch.setenv("APP_BASE_URL", TEST_APP_BASE_URL)
    monkeypatch.delenv("CORS_ALLOWED_ORIGINS", raising=False)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def repos(backend: FakeBackend) -> Repositories:
    return Repositories(backend.db)


@pytest.fixture
def client(backend: FakeBackend):
    """TestClient with the in-memory backend."""
    app.dependency_overrides[get_backend] = lambda: backend
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def owner(backend: FakeBackend) -> dict:
    """Verified owner of "Acme Facilities"."""
    return backend.add_member("owner@acme.test")
