"""Tests for Session expiry logic, TokenStore mirroring, and the storage backends."""
import logging
import time

import jwt

from atlas_client.session import Session
from atlas_client.storage import MemoryStorage, SQLStorage
from atlas_client.tests.fakes import make_token
from atlas_client.token_store import TokenStore


def _session(access_token: str = "at", refresh_token: str = "rt") -> Session:
    return Session(access_token=access_token, refresh_token=refresh_token, user_id="user-1", device_id="dev-1")


class BrokenStorage:
    def load(self):
        raise OSError("disk gone")

    def save(self, session):
        raise OSError("disk full")

    def remove(self):
        raise OSError("disk gone")


def test_fresh_token_not_expired_or_soon():
    """Token just issued with 600s lifetime: should not trigger refresh."""
    s = _session(make_token(expires_in=600))
    assert s.access_token_expired_or_soon(buffer_seconds=60) is False


def test_token_within_buffer_is_expiring_soon():
    """Issued 550s ago with 50s left: within 60s buffer, should trigger refresh."""
    s = _session(make_token(expires_in=50, iat=int(time.time()) - 550))
    assert s.access_token_expired_or_soon(buffer_seconds=60) is True


def test_expired_token():
    s = _session(make_token(expires_in=-1))
    assert s.access_token_expired_or_soon(buffer_seconds=0) is True


def test_opaque_token_never_counts_as_expired():
    """Non-JWT access tokens: only a 401 from the backend can tell us they expired."""
    s = _session("opaque-token")
    assert s.expires_at is None
    assert s.access_token_expired_or_soon() is False


def test_token_without_exp_claim():
    token = jwt.encode({"sub": "user-1"}, "test-secret-0123456789abcdefghijkl", algorithm="HS256")
    assert _session(token).expires_at is None


def test_with_tokens_keeps_refresh_token_unless_rotated():
    s = _session("at-1", "rt-1")
    refreshed = s.with_tokens("at-2")
    assert refreshed.access_token == "at-2"
    assert refreshed.refresh_token == "rt-1"
    assert refreshed.device_id == "dev-1"
    rotated = s.with_tokens("at-3", "rt-2")
    assert (rotated.access_token, rotated.refresh_token) == ("at-3", "rt-2")
    # The original value is untouched
    assert s.access_token == "at-1"


def test_session_tokens_not_in_repr():
    assert "secret-at" not in repr(_session("secret-at", "secret-rt"))
    assert "secret-rt" not in repr(_session("secret-at", "secret-rt"))


def test_set_get_clear_mirrors_storage():
    backing = {}
    store = TokenStore(MemoryStorage(backing))
    assert store.get() is None
    s = _session()
    store.set(s)
    assert store.get() is s
    assert backing["session"]["access_token"] == "at"
    store.clear()
    assert store.get() is None
    assert "session" not in backing


def test_restore_from_shared_storage():
    backing = {}
    TokenStore(MemoryStorage(backing)).set(_session("at-9", "rt-9"))
    store = TokenStore(MemoryStorage(backing))
    restored = store.restore()
    assert restored is not None
    assert store.get().access_token == "at-9"
    assert store.get().refresh_token == "rt-9"


def test_storage_failures_are_logged_not_raised(caplog):
    store = TokenStore(BrokenStorage())
    with caplog.at_level(logging.WARNING, logger="atlas_client.token_store"):
        store.set(_session("secret-at", "secret-rt"))
        assert store.get() is not None
        store.clear()
        assert store.get() is None
        assert store.restore() is None
    messages = [r.getMessage() for r in caplog.records]
    assert any("Failed to persist" in m for m in messages)
    assert any("Failed to remove" in m for m in messages)
    assert any("Failed to load" in m for m in messages)
    assert not any("secret-at" in m or "secret-rt" in m for m in messages)


def test_sql_storage_round_trip():
    storage = SQLStorage("test-app", database_url="sqlite:///:memory:")
    assert storage.load() is None
    storage.save(_session("at-1"))
    storage.save(_session("at-2"))
    loaded = storage.load()
    assert loaded == _session("at-2")
    storage.remove()
    assert storage.load() is None
    # Removing twice is fine
    storage.remove()


def test_sql_storage_keys_are_independent():
    first = SQLStorage("app-a", database_url="sqlite:///:memory:")
    second = SQLStorage("app-b", engine=first.engine)
    first.save(_session("at-a"))
    second.save(_session("at-b"))
    assert first.load().access_token == "at-a"
    assert second.load().access_token == "at-b"
    second.remove()
    assert first.load() is not None


def test_sql_storage_survives_new_instance(tmp_path):
    url = f"sqlite:///{tmp_path / 'sessions.db'}"
    SQLStorage("test-app", database_url=url).save(_session("persisted"))
    assert SQLStorage("test-app", database_url=url).load().access_token == "persisted"


def test_token_store_clock_independent():
    """Expiry comes from the token's exp claim, not from when the session was stored."""
    s = _session(make_token(expires_in=600))
    exp = s.expires_at
    assert exp is not None
    assert abs(exp - (time.time() + 600)) < 5


def test_short_lived_token_not_expiring_soon_until_expired():
    """Lifetime shorter than the buffer: refreshing up front would mean a refresh on every request."""
    s = _session(make_token(expires_in=5))
    assert s.access_token_expired_or_soon(buffer_seconds=10) is False
    assert _session(make_token(expires_in=-1)).access_token_expired_or_soon(buffer_seconds=10) is True


def test_token_without_iat_uses_buffer():
    token = jwt.encode({"sub": "user-1", "exp": int(time.time()) + 5}, "test-secret-0123456789abcdefghijkl", algorithm="HS256")
    assert _session(token).access_token_expired_or_soon(buffer_seconds=10) is True
