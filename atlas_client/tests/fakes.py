"""
Test doubles for atlas_client: a scripted in-process transport and token/response helpers.
"""
import asyncio
import time

import jwt

from atlas_client.errors import TransportError
from atlas_client.transport import HttpRequest, HttpResponse

BASE = "http://as.test"
DATA = "http://data.test/app/test-app/endpoint/data/v1"

LOGIN = ("POST", "/login")
PROFILE = ("GET", "/auth/profile")
REFRESH = ("POST", "/auth/session")
LOGOUT = ("DELETE", "/auth/session")

TEST_SECRET = "test-secret-0123456789abcdefghijkl"


def make_token(sub: str = "user-1", expires_in: int = 1800, **extra) -> str:
    """JWT signed with a test key; the client only reads its exp claim."""
    now = int(time.time())
    return jwt.encode({"sub": sub, "iat": now, "exp": now + expires_in, **extra}, TEST_SECRET, algorithm="HS256")


def ok(body=None, status: int = 200) -> HttpResponse:
    return HttpResponse(status=status, headers={"content-type": "application/json"}, body=body)


def error(status: int, error_code: str | None = None, message: str = "error") -> HttpResponse:
    body = {"error": message, "error_code": error_code, "link": "http://as.test/logs"}
    return HttpResponse(status=status, headers={"content-type": "application/json"}, body=body)


def login_ok(access_token: str | None = None, refresh_token: str = "rt-1", user_id: str = "user-1") -> HttpResponse:
    return ok(
        {
            "access_token": access_token or make_token(user_id),
            "refresh_token": refresh_token,
            "user_id": user_id,
            "device_id": "device-1",
        }
    )


def profile_ok(user_id: str = "user-1") -> HttpResponse:
    return ok(
        {
            "user_id": user_id,
            "identities": [{"id": "a@b.com", "provider_type": "local-userpass"}],
            "data": {"email": "a@b.com"},
        }
    )


class FakeTransport:
    """
    Scripted transport. on(method, path_suffix, *responses) queues responses for matching requests;
    the last one repeats. A response may be an HttpResponse, an exception to raise, or a
    callable(request) -> HttpResponse. gate(method, path) holds matching requests until released.
    """

    def __init__(self):
        self.requests: list[HttpRequest] = []
        self._routes: dict[tuple[str, str], list] = {}
        self._gates: dict[tuple[str, str], asyncio.Event] = {}
        self.closed = False

    def on(self, method: str, path: str, *responses) -> "FakeTransport":
        self._routes[(method, path)] = list(responses)
        return self

    def gate(self, method: str, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self._gates[(method, path)] = event
        return event

    def _key(self, request: HttpRequest) -> tuple[str, str]:
        for method, path in self._routes:
            if request.method == method and request.url.endswith(path):
                return method, path
        raise AssertionError(f"unexpected request {request.method} {request.url}")

    def sent(self, method: str, path: str) -> list[HttpRequest]:
        return [r for r in self.requests if r.method == method and r.url.endswith(path)]

    def count(self, method: str, path: str) -> int:
        return len(self.sent(method, path))

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        key = self._key(request)
        # Suspend like real network I/O so concurrent callers interleave
        await asyncio.sleep(0)
        gate = self._gates.get(key)
        if gate is not None:
            await gate.wait()
        queue = self._routes[key]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(request)
        return response

    async def aclose(self) -> None:
        self.closed = True


def timeout_error() -> TransportError:
    return TransportError("Request timed out")
