"""
Login credentials, one frozen dataclass per App Services auth provider.
encode() returns the JSON body the provider's /login endpoint expects; no I/O here.
"""
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from atlas_client.errors import InvalidCredentials

PROVIDER_ANONYMOUS = "anon-user"
PROVIDER_EMAIL_PASSWORD = "local-userpass"
PROVIDER_API_KEY = "api-key"
PROVIDER_FUNCTION = "custom-function"
PROVIDER_JWT = "custom-token"


def _require(value: str, what: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidCredentials(f"{what} must be a non-empty string")


class Credentials:
    """Base for all credential variants. Use the factory methods rather than the subclasses directly."""

    provider: ClassVar[str]

    def encode(self) -> dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def anonymous() -> "AnonymousCredentials":
        return AnonymousCredentials()

    @staticmethod
    def email_password(email: str, password: str) -> "EmailPasswordCredentials":
        return EmailPasswordCredentials(email=email, password=password)

    @staticmethod
    def api_key(key: str) -> "ApiKeyCredentials":
        return ApiKeyCredentials(key=key)

    @staticmethod
    def function(payload: Mapping[str, Any]) -> "FunctionCredentials":
        return FunctionCredentials(payload=payload)

    @staticmethod
    def jwt(token: str) -> "JWTCredentials":
        return JWTCredentials(token=token)


@dataclass(frozen=True)
class AnonymousCredentials(Credentials):
    provider: ClassVar[str] = PROVIDER_ANONYMOUS

    def encode(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class EmailPasswordCredentials(Credentials):
    provider: ClassVar[str] = PROVIDER_EMAIL_PASSWORD

    email: str
    password: str = field(repr=False)

    def __post_init__(self):
        _require(self.email, "email")
        _require(self.password, "password")

    def encode(self) -> dict[str, Any]:
        # The userpass provider calls the email "username" on the wire
        return {"username": self.email, "password": self.password}


@dataclass(frozen=True)
class ApiKeyCredentials(Credentials):
    provider: ClassVar[str] = PROVIDER_API_KEY

    key: str = field(repr=False)

    def __post_init__(self):
        _require(self.key, "API key")

    def encode(self) -> dict[str, Any]:
        return {"key": self.key}


@dataclass(frozen=True)
class FunctionCredentials(Credentials):
    """Custom function auth: the payload is passed to the app's authentication function unchanged."""

    provider: ClassVar[str] = PROVIDER_FUNCTION

    payload: Mapping[str, Any]

    def __post_init__(self):
        if not isinstance(self.payload, Mapping):
            raise InvalidCredentials("function payload must be a mapping")
        # Freeze a private copy so later mutation of the caller's dict cannot change the credentials
        object.__setattr__(self, "payload", dict(self.payload))

    def __eq__(self, other):
        return isinstance(other, FunctionCredentials) and self.payload == other.payload

    def __hash__(self):
        return hash((self.provider, repr(sorted(self.payload.items(), key=lambda kv: kv[0]))))

    def encode(self) -> dict[str, Any]:
        return dict(self.payload)


@dataclass(frozen=True)
class JWTCredentials(Credentials):
    provider: ClassVar[str] = PROVIDER_JWT

    token: str = field(repr=False)

    def __post_init__(self):
        _require(self.token, "JWT")

    def encode(self) -> dict[str, Any]:
        return {"token": self.token}
