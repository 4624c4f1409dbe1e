"""
Session and User value types.
A Session is immutable: a refresh produces a new Session, so readers never see half-swapped tokens.
"""
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import jwt


def _decode_claims(token: str) -> dict:
    """Read JWT claims without verifying the signature; the backend is the verifier, we only need exp."""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return {}


@dataclass(frozen=True)
class Session:
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    user_id: str
    device_id: str | None = None

    @property
    def expires_at(self) -> float | None:
        """Access token exp claim (unix seconds), or None when the token is opaque."""
        exp = _decode_claims(self.access_token).get("exp")
        return float(exp) if isinstance(exp, (int, float)) else None

    def access_token_expired_or_soon(self, buffer_seconds: int = 10) -> bool:
        """
        True if the access token is expired or within buffer_seconds of expiry (for proactive refresh).
        When the token lifetime (exp - iat) is not longer than buffer_seconds, only an actual expiry counts.
        Opaque tokens never count as expired; the backend's 401 is the signal for those.
        """
        claims = _decode_claims(self.access_token)
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return False
        now = time.time()
        if now >= exp:
            return True
        iat = claims.get("iat")
        lifetime = exp - iat if isinstance(iat, (int, float)) else None
        # "Expiring soon" only when lifetime is longer than the buffer (else we'd refresh on every request)
        if lifetime is not None and lifetime <= buffer_seconds:
            return False
        return now >= exp - buffer_seconds

    def with_tokens(self, access_token: str, refresh_token: str | None = None) -> "Session":
        """New session with a fresh access token; the refresh token is kept unless the server rotated it."""
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "user_id": self.user_id,
            "device_id": self.device_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            user_id=data["user_id"],
            device_id=data.get("device_id"),
        )


@dataclass(frozen=True)
class Identity:
    id: str
    provider_type: str


@dataclass(frozen=True)
class User:
    id: str
    session: Session
    provider_type: str | None = None
    identities: tuple[Identity, ...] = ()
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def access_token(self) -> str:
        return self.session.access_token

    @property
    def refresh_token(self) -> str:
        return self.session.refresh_token

    @property
    def device_id(self) -> str | None:
        return self.session.device_id


class AuthState(Enum):
    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    LOGGED_IN = "logged_in"
    REFRESHING = "refreshing"
