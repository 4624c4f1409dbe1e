"""
HTTP transport. The only module that talks to httpx; everything above sees HttpRequest/HttpResponse
and atlas_client.errors.TransportError.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from atlas_client.config import HTTP_TIMEOUT
from atlas_client.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None

    def with_bearer(self, token: str) -> "HttpRequest":
        """Same request with the Authorization header replaced."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != "authorization"}
        headers["Authorization"] = f"Bearer {token}"
        return HttpRequest(method=self.method, url=self.url, headers=headers, json=self.json)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None  # parsed JSON when the response is JSON, else text

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def error_code(self) -> str | None:
        """App Services error bodies look like {"error": "...", "error_code": "...", "link": "..."}."""
        if isinstance(self.body, dict):
            code = self.body.get("error_code")
            return str(code) if code else None
        return None

    @property
    def error_message(self) -> str | None:
        if isinstance(self.body, dict):
            msg = self.body.get("error") or self.body.get("error_description")
            return str(msg) if msg else None
        if isinstance(self.body, str) and self.body:
            return self.body[:500]
        return None

    @property
    def link(self) -> str | None:
        if isinstance(self.body, dict) and self.body.get("link"):
            return str(self.body["link"])
        return None


class Transport(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse: ...

    async def aclose(self) -> None: ...


def _parse_body(r: httpx.Response) -> Any:
    if not r.content:
        return None
    content_type = r.headers.get("content-type", "")
    if content_type.startswith("application/json") or content_type.startswith("application/ejson"):
        try:
            return r.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return r.text
    return r.text


class HttpxTransport:
    """
    Sends requests over one shared httpx.AsyncClient.
    Pass client= to inject a preconfigured client (e.g. httpx.ASGITransport in tests); it is then
    owned by the caller and not closed by aclose().
    """

    def __init__(self, timeout: float = HTTP_TIMEOUT, client: httpx.AsyncClient | None = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout

    async def send(self, request: HttpRequest) -> HttpResponse:
        headers = {"Accept": "application/json", **request.headers}
        if request.json is not None:
            headers.setdefault("Content-Type", "application/json")
        logger.debug("%s %s", request.method, request.url)
        try:
            r = await self._client.request(
                request.method,
                request.url,
                headers=headers,
                json=request.json,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {request.method} {request.url}", cause=e) from e
        except httpx.TransportError as e:
            raise TransportError(f"Failed to send request: {request.method} {request.url}: {e}", cause=e) from e
        return HttpResponse(status=r.status_code, headers=dict(r.headers), body=_parse_body(r))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
