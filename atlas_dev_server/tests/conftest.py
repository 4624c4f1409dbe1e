"""
Pytest configuration for atlas_dev_server. Every test starts from empty in-memory state.
"""
import os

import pytest
from fastapi.testclient import TestClient

# Seeding is for manual runs; tests create their own users
for name in ("DEV_SEED_USER", "DEV_SEED_PASSWORD", "DEV_API_KEY"):
    os.environ.pop(name, None)

from atlas_dev_server.main import app  # noqa: E402
from atlas_dev_server.state import STATE  # noqa: E402


@pytest.fixture(autouse=True)
def clean_state():
    STATE.reset()
    yield
    STATE.reset()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user():
    return STATE.register_email_user("alice@example.com", "alicepass")
