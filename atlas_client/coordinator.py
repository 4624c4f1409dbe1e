"""
Login / refresh / logout state machine. The only writer of the TokenStore and of the current User.

At most one login and one refresh are in flight at a time; concurrent callers attach to the
running operation (PendingOperation) instead of issuing their own network call. The
check-and-register steps below contain no await, so the event loop cannot interleave them.
"""
import logging
from dataclasses import replace
from typing import Any

from atlas_client.config import BASE_URL
from atlas_client.credentials import Credentials
from atlas_client.errors import (
    AtlasClientError,
    AuthenticationExpired,
    AuthenticationFailed,
    MalformedResponse,
    NotAuthenticated,
    ServiceError,
    TransportError,
)
from atlas_client.pending import PendingOperation
from atlas_client.routes import location_request, login_request, logout_request, profile_request, refresh_request
from atlas_client.session import AuthState, Identity, Session, User
from atlas_client.token_store import TokenStore
from atlas_client.transport import HttpResponse, Transport

logger = logging.getLogger(__name__)

# Error codes meaning the session (access or refresh token) is no longer valid
INVALID_SESSION_CODES = {"InvalidSession", "SessionNotFound", "InvalidRefreshToken"}


def is_transient(response: HttpResponse) -> bool:
    return response.status >= 500 or response.status == 429


def is_invalid_session(response: HttpResponse) -> bool:
    return response.status == 401 or response.error_code in INVALID_SESSION_CODES


def parse_profile(body: Any) -> tuple[str | None, tuple[Identity, ...], dict[str, Any]]:
    """(provider type, identities, custom data) from a /auth/profile body; tolerant of missing keys."""
    if not isinstance(body, dict):
        return None, (), {}
    identities = tuple(
        Identity(id=str(i.get("id", "")), provider_type=str(i.get("provider_type", "")))
        for i in body.get("identities") or []
        if isinstance(i, dict)
    )
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    provider_type = identities[0].provider_type if identities else None
    return provider_type, identities, dict(data)


class AuthCoordinator:
    def __init__(
        self,
        app_id: str,
        transport: Transport,
        token_store: TokenStore | None = None,
        *,
        base_url: str = BASE_URL,
    ):
        self.app_id = app_id
        self.transport = transport
        self.token_store = token_store if token_store is not None else TokenStore()
        self.base_url = base_url.rstrip("/")
        self._user: User | None = None
        self._pending_login: PendingOperation | None = None
        self._pending_refresh: PendingOperation | None = None
        self._pending_location: PendingOperation | None = None
        self._location: dict[str, Any] | None = None
        # Bumped by logout; results of operations started under an older generation are discarded
        self._generation = 0
        # Set when the refresh token was rejected, until the next login/logout
        self.session_expired = False

    # --- state ---

    @property
    def state(self) -> AuthState:
        """
        LOGGING_IN only while the first login runs. Switching users keeps reporting the current user
        until the new login commits; requests started meanwhile still wait for it (see login_pending).
        """
        if self._user is None:
            return AuthState.LOGGING_IN if self._pending_login is not None else AuthState.LOGGED_OUT
        if self._pending_refresh is not None:
            return AuthState.REFRESHING
        return AuthState.LOGGED_IN

    @property
    def current_user(self) -> User | None:
        return self._user

    @property
    def session(self) -> Session | None:
        return self.token_store.get()

    @property
    def generation(self) -> int:
        """Bumped by every logout that had something to discard."""
        return self._generation

    @property
    def login_pending(self) -> PendingOperation | None:
        return self._pending_login

    @property
    def refresh_pending(self) -> PendingOperation | None:
        return self._pending_refresh

    def restore(self) -> User | None:
        """Rehydrate LOGGED_IN from storage without network. Profile data stays empty until refresh_profile()."""
        session = self.token_store.restore()
        if session is None:
            return None
        self._user = User(id=session.user_id, session=session)
        self.session_expired = False
        logger.info("Restored session for user_id=%s", session.user_id)
        return self._user

    # --- location ---

    async def resolve_location(self) -> dict[str, Any]:
        """Fetch the app's deployment location once and point base_url at its hostname."""
        if self._location is not None:
            return self._location
        if self._pending_location is None:
            self._pending_location = PendingOperation("location", self._run_location)
        return await self._pending_location.wait()

    async def _run_location(self) -> dict[str, Any]:
        try:
            response = await self.transport.send(location_request(self.base_url, self.app_id))
            if not response.ok:
                raise ServiceError(
                    response.status,
                    response.error_message,
                    error_code=response.error_code,
                    link=response.link,
                    body=response.body,
                )
            body = response.body
            if not isinstance(body, dict) or not body.get("hostname"):
                raise MalformedResponse("Location response missing hostname", body=body)
            self._location = body
            self.base_url = str(body["hostname"]).rstrip("/")
            logger.info("Resolved app %s location=%s hostname=%s", self.app_id, body.get("location"), self.base_url)
            return body
        finally:
            self._pending_location = None

    # --- login ---

    async def login(self, credentials: Credentials) -> User:
        """
        Log in with credentials. A concurrent login with equal credentials joins the in-flight one;
        a login with different credentials waits for it to settle and then runs its own.
        """
        while self._pending_login is not None and self._pending_login.key != credentials:
            pending = self._pending_login
            try:
                await pending.wait()
            except AtlasClientError:
                logger.debug("Previous login failed; proceeding with next login")
        pending = self._pending_login
        if pending is None:
            pending = PendingOperation("login", lambda: self._run_login(credentials, self._generation), key=credentials)
            self._pending_login = pending
        else:
            logger.debug("Joining in-flight login provider=%s", credentials.provider)
        return await pending.wait()

    async def _run_login(self, credentials: Credentials, generation: int) -> User:
        try:
            return await self._login(credentials, generation)
        finally:
            if generation == self._generation:
                self._pending_login = None

    async def _login(self, credentials: Credentials, generation: int) -> User:
        current = self.token_store.get()
        request = login_request(
            self.base_url,
            self.app_id,
            credentials.provider,
            credentials.encode(),
            device_id=current.device_id if current else None,
        )
        try:
            response = await self.transport.send(request)
        except TransportError as e:
            logger.info("Login failed (transport) provider=%s: %s", credentials.provider, e)
            raise

        if not response.ok:
            logger.info(
                "Login rejected provider=%s status=%s error_code=%s",
                credentials.provider,
                response.status,
                response.error_code,
            )
            if is_transient(response):
                raise ServiceError(
                    response.status,
                    response.error_message,
                    error_code=response.error_code,
                    link=response.link,
                    body=response.body,
                )
            raise AuthenticationFailed(
                response.error_message or f"Login failed with status {response.status}",
                status=response.status,
                error_code=response.error_code,
                body=response.body,
            )

        body = response.body
        if not isinstance(body, dict) or not all(body.get(k) for k in ("access_token", "refresh_token", "user_id")):
            raise MalformedResponse("Login response missing access_token, refresh_token or user_id", body=body)

        session = Session(
            access_token=body["access_token"],
            refresh_token=body["refresh_token"],
            user_id=str(body["user_id"]),
            device_id=body.get("device_id") or (current.device_id if current else None),
        )
        provider_type, identities, profile = await self._fetch_profile(session)

        if generation != self._generation:
            raise NotAuthenticated("Logged out while the login was in flight")

        self.token_store.set(session)
        self._user = User(
            id=session.user_id,
            session=session,
            provider_type=provider_type or credentials.provider,
            identities=identities,
            profile=profile,
        )
        self.session_expired = False
        logger.info("Logged in user_id=%s provider=%s", session.user_id, credentials.provider)
        return self._user

    async def _fetch_profile(self, session: Session) -> tuple[str | None, tuple[Identity, ...], dict[str, Any]]:
        """Profile right after login. A failure here does not fail the login."""
        try:
            response = await self.transport.send(profile_request(self.base_url, session.access_token))
        except TransportError as e:
            logger.warning("Profile fetch failed for user_id=%s: %s", session.user_id, e)
            return None, (), {}
        if not response.ok:
            logger.warning("Profile fetch failed for user_id=%s status=%s", session.user_id, response.status)
            return None, (), {}
        return parse_profile(response.body)

    def apply_profile(self, body: Any) -> User | None:
        """Update the current user's identities and custom data from a /auth/profile body."""
        if self._user is None:
            return None
        provider_type, identities, profile = parse_profile(body)
        self._user = replace(
            self._user,
            provider_type=provider_type or self._user.provider_type,
            identities=identities,
            profile=profile,
        )
        return self._user

    # --- refresh ---

    async def refresh(self, stale_access_token: str | None = None) -> Session:
        """
        New access token for the current session; joins an in-flight refresh if there is one.
        If stale_access_token is given and the stored token already differs, someone else refreshed:
        return the current session without a network call.
        """
        if self._pending_refresh is not None:
            logger.debug("Joining in-flight refresh")
            return await self._pending_refresh.wait()
        session = self.token_store.get()
        if session is None or self._user is None:
            if self.session_expired:
                raise AuthenticationExpired("Session expired; log in again")
            raise NotAuthenticated("No user is logged in")
        if stale_access_token is not None and session.access_token != stale_access_token:
            return session
        self._pending_refresh = PendingOperation("refresh", lambda: self._run_refresh(session, self._generation))
        return await self._pending_refresh.wait()

    async def _run_refresh(self, session: Session, generation: int) -> Session:
        try:
            return await self._refresh(session, generation)
        finally:
            if generation == self._generation:
                self._pending_refresh = None

    async def _refresh(self, session: Session, generation: int) -> Session:
        try:
            response = await self.transport.send(refresh_request(self.base_url, session.refresh_token))
        except TransportError as e:
            # Transient: keep the old session, the caller decides whether to retry
            logger.info("Refresh failed (transport) user_id=%s; keeping session: %s", session.user_id, e)
            raise

        if generation != self._generation:
            raise AuthenticationExpired("Logged out while the refresh was in flight")

        if not response.ok:
            if is_transient(response) and response.error_code not in INVALID_SESSION_CODES:
                logger.info("Refresh failed (status=%s) user_id=%s; keeping session", response.status, session.user_id)
                raise ServiceError(
                    response.status,
                    response.error_message,
                    error_code=response.error_code,
                    link=response.link,
                    body=response.body,
                )
            self._evict(session, f"refresh rejected status={response.status} error_code={response.error_code}")
            raise AuthenticationExpired(response.error_message or "Refresh token rejected; log in again")

        body = response.body
        if not isinstance(body, dict) or not body.get("access_token"):
            self._evict(session, "malformed refresh response")
            raise MalformedResponse("Refresh response missing access_token", body=body)

        new_session = session.with_tokens(body["access_token"], body.get("refresh_token"))
        self.token_store.set(new_session)
        if self._user is not None:
            self._user = replace(self._user, session=new_session)
        logger.info("Refreshed access token for user_id=%s", session.user_id)
        return new_session

    def _evict(self, session: Session, reason: str) -> None:
        logger.info("Session for user_id=%s is no longer valid (%s); logging out", session.user_id, reason)
        self.token_store.clear()
        self._user = None
        self.session_expired = True

    # --- logout ---

    async def logout(self) -> None:
        """
        Clear the local session immediately, then revoke the refresh token server-side (best effort).
        A login or refresh still in flight is detached: its waiters get an error and its result is discarded.
        Logging out when already logged out is a no-op.
        """
        session = self.token_store.get()
        self.session_expired = False
        in_flight = self._pending_login is not None or self._pending_refresh is not None
        if session is None and self._user is None and not in_flight:
            logger.debug("Logout requested while logged out; nothing to do")
            return
        self._generation += 1
        self._pending_login = None
        self._pending_refresh = None
        self.token_store.clear()
        self._user = None
        if session is None:
            logger.info("Logged out; discarded in-flight login")
            return
        user_id = session.user_id
        logger.info("Logged out user_id=%s", user_id)
        try:
            response = await self.transport.send(logout_request(self.base_url, session.refresh_token))
        except TransportError as e:
            logger.warning("Server-side logout failed for user_id=%s: %s", user_id, e)
            return
        if not response.ok:
            logger.warning("Server-side logout failed for user_id=%s status=%s", user_id, response.status)
