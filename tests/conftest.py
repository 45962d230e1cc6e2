from __future__ import annotations

import os

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

import pytest
from fastapi.testclient import TestClient

from src.main import create_app
from tests.factories import StubStaffReportsRepository


@pytest.fixture()
def stub_repository() -> StubStaffReportsRepository:
    return StubStaffReportsRepository()


@pytest.fixture()
def client() -> TestClient:
    app = create_app()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
