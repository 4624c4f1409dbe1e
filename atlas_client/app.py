"""
App: the public entry point. One App per App Services application; each App owns its own
token store, coordinator and pipeline, so several can live in one process.
"""
import logging
from typing import Any

from atlas_client.config import BASE_URL, DATA_API_URL, DATA_SOURCE, HTTP_TIMEOUT, REFRESH_BUFFER_SECONDS
from atlas_client.coordinator import AuthCoordinator
from atlas_client.credentials import Credentials
from atlas_client.data_api import DataApiOperation, MongoCollection, Namespace, data_api_url
from atlas_client.pipeline import AuthorizedRequestPipeline
from atlas_client.routes import profile_request
from atlas_client.session import AuthState, User
from atlas_client.storage import SessionStorage
from atlas_client.token_store import TokenStore
from atlas_client.transport import HttpRequest, HttpxTransport, Transport

logger = logging.getLogger(__name__)


class App:
    def __init__(
        self,
        app_id: str,
        *,
        base_url: str = BASE_URL,
        data_api_base_url: str | None = DATA_API_URL,
        transport: Transport | None = None,
        storage: SessionStorage | None = None,
        data_source: str = DATA_SOURCE,
        timeout: float = HTTP_TIMEOUT,
        refresh_buffer_seconds: int = REFRESH_BUFFER_SECONDS,
    ):
        if not app_id:
            raise ValueError("app_id is required")
        self.app_id = app_id
        self.data_source = data_source
        self.data_api_base_url = (data_api_base_url or data_api_url(app_id)).rstrip("/")
        self.transport = transport if transport is not None else HttpxTransport(timeout=timeout)
        self.token_store = TokenStore(storage)
        self.coordinator = AuthCoordinator(app_id, self.transport, self.token_store, base_url=base_url)
        self.pipeline = AuthorizedRequestPipeline(
            self.coordinator,
            self.transport,
            refresh_buffer_seconds=refresh_buffer_seconds,
        )

    async def __aenter__(self) -> "App":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.aclose()

    # --- auth ---

    async def login(self, credentials: Credentials) -> User:
        return await self.coordinator.login(credentials)

    async def logout(self) -> None:
        await self.coordinator.logout()

    @property
    def current_user(self) -> User | None:
        return self.coordinator.current_user

    @property
    def state(self) -> AuthState:
        return self.coordinator.state

    def restore(self) -> User | None:
        """Pick up a session persisted by a previous App with the same storage."""
        return self.coordinator.restore()

    async def resolve_location(self) -> dict[str, Any]:
        return await self.coordinator.resolve_location()

    async def refresh_profile(self) -> User | None:
        body = await self.pipeline.execute(profile_request(self.coordinator.base_url))
        return self.coordinator.apply_profile(body)

    # --- data ---

    async def call(self, operation: DataApiOperation | HttpRequest) -> Any:
        """Run one Data API operation (or any HttpRequest) as the current user. Returns the response body."""
        if isinstance(operation, DataApiOperation):
            request = operation.to_request(self.data_api_base_url)
            logger.debug("Data API %s on %s.%s", operation.action, operation.namespace.database, operation.namespace.collection)
        else:
            request = operation
        return await self.pipeline.execute(request)

    def namespace(self, collection: str, database: str, data_source: str | None = None) -> Namespace:
        return Namespace(data_source=data_source or self.data_source, database=database, collection=collection)

    def collection(self, name: str, database: str, data_source: str | None = None) -> MongoCollection:
        return MongoCollection(self, self.namespace(name, database, data_source))
