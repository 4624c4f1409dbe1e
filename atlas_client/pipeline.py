"""
Authorized request pipeline: attach the access token, send, and on an auth failure refresh once and retry once.
Never retries for non-auth reasons and never logs in on its own.
"""
import logging
from typing import Any

from atlas_client.config import REFRESH_BUFFER_SECONDS
from atlas_client.coordinator import AuthCoordinator, is_invalid_session
from atlas_client.errors import (
    ApiError,
    AtlasClientError,
    AuthenticationExpired,
    NotAuthenticated,
)
from atlas_client.session import AuthState, Session
from atlas_client.transport import HttpRequest, HttpResponse, Transport

logger = logging.getLogger(__name__)


class AuthorizedRequestPipeline:
    def __init__(
        self,
        coordinator: AuthCoordinator,
        transport: Transport,
        *,
        refresh_buffer_seconds: int = REFRESH_BUFFER_SECONDS,
    ):
        self.coordinator = coordinator
        self.transport = transport
        self.refresh_buffer_seconds = refresh_buffer_seconds

    async def _ready_session(self) -> Session:
        """Current session; waits for an in-flight login first. Raises when nobody is logged in."""
        pending = self.coordinator.login_pending
        if pending is not None:
            try:
                await pending.wait()
            except AtlasClientError as e:
                logger.debug("In-flight login failed while a request waited on it: %s", e)
        session = self.coordinator.session
        if self.coordinator.state is AuthState.LOGGED_OUT or session is None:
            if self.coordinator.session_expired:
                raise AuthenticationExpired("Session expired; log in again")
            raise NotAuthenticated("No user is logged in")
        return session

    async def execute(self, request: HttpRequest) -> Any:
        """
        Send request with the current access token. Returns the parsed body of a 2xx response.
        Raises AuthenticationExpired, TransportError, ApiError, or NotAuthenticated (nobody logged in,
        or the session was logged out while the request was in flight).
        """
        session = await self._ready_session()
        generation = self.coordinator.generation
        refreshed = False

        # Refresh up front when one is already running or the token is about to expire
        if (
            self.coordinator.refresh_pending is not None
            or session.access_token_expired_or_soon(self.refresh_buffer_seconds)
        ):
            session = await self.coordinator.refresh(stale_access_token=session.access_token)
            refreshed = True

        response = await self.transport.send(request.with_bearer(session.access_token))

        if is_invalid_session(response):
            if refreshed:
                logger.info("Request still unauthorized after refresh: %s %s", request.method, request.url)
                raise AuthenticationExpired(response.error_message or "Access token rejected after refresh")
            if self.coordinator.generation != generation:
                # Sent under a session that has since been logged out
                raise NotAuthenticated("Logged out while the request was in flight")
            logger.debug("Access token rejected (status=%s); refreshing and retrying once", response.status)
            session = await self.coordinator.refresh(stale_access_token=session.access_token)
            response = await self.transport.send(request.with_bearer(session.access_token))
            if is_invalid_session(response):
                logger.info("Request still unauthorized after refresh: %s %s", request.method, request.url)
                raise AuthenticationExpired(response.error_message or "Access token rejected after refresh")

        return self._result(response)

    @staticmethod
    def _result(response: HttpResponse) -> Any:
        if not response.ok:
            raise ApiError(
                response.status,
                response.error_message,
                error_code=response.error_code,
                link=response.link,
                body=response.body,
            )
        return response.body
