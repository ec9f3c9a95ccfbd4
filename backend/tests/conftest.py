"""
Pytest configuration and shared test helpers for backend tests.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from fastapi.testclient import TestClient
from server import app
from auth import create_access_token
from services.settings_service import settings_cache
from utils.rate_limiter import rate_limiter


@pytest.fixture
def client():
    """Return a TestClient for the main FastAPI app (server:app). No lifespan, no MongoDB."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_in_memory_state():
    settings_cache.invalidate()
    rate_limiter.reset()
    yield
    settings_cache.invalidate()
    rate_limiter.reset()


@pytest.fixture
def admin_headers():
    token = create_access_token({"user_id": "admin-1", "email": "admin@clicklone.com", "role": "ROLE_ADMIN"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    token = create_access_token({"user_id": "user-1", "email": "user@example.com", "role": "ROLE_USER"})
    return {"Authorization": f"Bearer {token}"}

