"""
Error taxonomy for the client. Auth errors, transport errors and Data API errors are distinct types
so callers can tell "log in again" from "retry later" from "fix the request".
"""
from typing import Any


class AtlasClientError(Exception):
    """Base class for every error raised by atlas_client."""


class AuthError(AtlasClientError):
    pass


class InvalidCredentials(AuthError):
    """Malformed credentials; detected locally, never sent over the wire."""


class AuthenticationFailed(AuthError):
    """Backend rejected a login (bad password, revoked key, disabled provider)."""

    def __init__(self, message: str, *, status: int | None = None, error_code: str | None = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.error_code = error_code
        self.body = body


class AuthenticationExpired(AuthError):
    """Refresh-and-retry exhausted or refresh token rejected; the caller must log in again."""


class NotAuthenticated(AuthError):
    """No user is logged in."""


class TransportError(AtlasClientError):
    """Network, timeout or connectivity failure. Safe to retry at the caller's discretion."""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ApiError(AtlasClientError):
    """Backend rejected a request for a reason unrelated to the session (validation, permission, limits)."""

    def __init__(
        self,
        status: int,
        error: str | None = None,
        *,
        error_code: str | None = None,
        link: str | None = None,
        body: Any = None,
    ):
        self.status = status
        self.error = error
        self.error_code = error_code
        self.link = link
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [f"status={self.status}"]
        if self.error_code:
            parts.append(f"error_code={self.error_code}")
        if self.error:
            parts.append(self.error)
        return "; ".join(parts)


class ServiceError(ApiError):
    """5xx or 429 from an auth endpoint. Transient: the session is kept."""


class MalformedResponse(AtlasClientError):
    """A 2xx response that does not match the backend contract (not JSON, missing fields)."""

    def __init__(self, message: str, *, body: Any = None):
        super().__init__(message)
        self.body = body
