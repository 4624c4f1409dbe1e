"""
In-memory backend state: users and their identities, refresh tokens, API keys, and collections.
Dev use only; everything is lost on restart. reset() gives tests a clean slate.
"""
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

import bcrypt

from atlas_dev_server.config import SEED_API_KEY, SEED_PASSWORD, SEED_USER

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    # Bcrypt has a 72-byte limit
    raw = password.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    raw = plain.encode("utf-8")[:72]
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))


def new_object_id() -> str:
    """24 hex chars, shaped like a MongoDB ObjectId."""
    return secrets.token_hex(12)


@dataclass
class DevUser:
    id: str
    identities: list[dict[str, str]] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    def profile(self) -> dict[str, Any]:
        return {
            "user_id": self.id,
            "domain_id": "dev-domain",
            "identities": list(self.identities),
            "data": dict(self.data),
            "type": "normal",
        }


@dataclass
class RefreshTokenRecord:
    user_id: str
    device_id: str
    revoked: bool = False


class BackendState:
    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.users: dict[str, DevUser] = {}
        # (provider_type, external id) -> user id
        self.identities: dict[tuple[str, str], str] = {}
        # email -> bcrypt hash
        self.passwords: dict[str, str] = {}
        # api key -> user id
        self.api_keys: dict[str, str] = {}
        self.refresh_tokens: dict[str, RefreshTokenRecord] = {}
        # (data source, database, collection) -> documents
        self.collections: dict[tuple[str, str, str], list[dict[str, Any]]] = {}
        # Per-endpoint request counters, for tests asserting on network traffic
        self.counters: dict[str, int] = {}

    def count(self, name: str) -> None:
        self.counters[name] = self.counters.get(name, 0) + 1

    # --- users ---

    def user_for_identity(self, provider_type: str, external_id: str, data: dict[str, Any] | None = None) -> DevUser:
        """Existing user linked to this identity, or a new user with it as the first identity."""
        key = (provider_type, external_id)
        user_id = self.identities.get(key)
        if user_id is not None:
            return self.users[user_id]
        user = DevUser(id=new_object_id(), data=dict(data or {}))
        user.identities.append({"id": external_id, "provider_type": provider_type})
        self.users[user.id] = user
        self.identities[key] = user.id
        return user

    def register_email_user(self, email: str, password: str) -> DevUser:
        self.passwords[email] = hash_password(password)
        return self.user_for_identity("local-userpass", email, {"email": email})

    def create_api_key(self, key: str | None = None) -> str:
        key = key or secrets.token_urlsafe(32)
        user = self.user_for_identity("api-key", key[:8])
        self.api_keys[key] = user.id
        return key

    # --- refresh tokens ---

    def issue_refresh_token(self, user_id: str, device_id: str) -> str:
        value = secrets.token_urlsafe(48)
        self.refresh_tokens[value] = RefreshTokenRecord(user_id=user_id, device_id=device_id)
        return value

    def valid_refresh_token(self, value: str) -> RefreshTokenRecord | None:
        record = self.refresh_tokens.get(value)
        if record is None or record.revoked or record.user_id not in self.users:
            return None
        return record

    def revoke_user_sessions(self, user_id: str) -> int:
        n = 0
        for record in self.refresh_tokens.values():
            if record.user_id == user_id and not record.revoked:
                record.revoked = True
                n += 1
        return n

    # --- data ---

    def collection(self, data_source: str, database: str, name: str) -> list[dict[str, Any]]:
        return self.collections.setdefault((data_source, database, name), [])


STATE = BackendState()


def seed_from_env(state: BackendState = STATE) -> None:
    """Create one email/password user and/or one API key from env if set."""
    if SEED_USER and SEED_PASSWORD:
        if SEED_USER not in state.passwords:
            state.register_email_user(SEED_USER, SEED_PASSWORD)
            logger.info("Seeded user: %s", SEED_USER)
        else:
            logger.debug("User already exists: %s", SEED_USER)
    if SEED_API_KEY and SEED_API_KEY not in state.api_keys:
        state.create_api_key(SEED_API_KEY)
        logger.info("Seeded API key")
