"""
Fixtures for atlas_client tests. Test doubles live in fakes.py.
"""
import pytest

from atlas_client.app import App
from atlas_client.storage import MemoryStorage
from atlas_client.tests.fakes import BASE, DATA, LOGIN, LOGOUT, PROFILE, FakeTransport, login_ok, ok, profile_ok


@pytest.fixture
def transport():
    t = FakeTransport()
    t.on(*LOGIN, login_ok())
    t.on(*PROFILE, profile_ok())
    t.on(*LOGOUT, ok(None, status=204))
    return t


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def app(transport, storage):
    return App("test-app", base_url=BASE, data_api_base_url=DATA, transport=transport, storage=storage)
