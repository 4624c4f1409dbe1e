"""Atlas App Services client: user authentication and the MongoDB Data API over HTTPS."""
from atlas_client.app import App
from atlas_client.credentials import Credentials
from atlas_client.data_api import DataApiOperation, MongoCollection, Namespace
from atlas_client.errors import (
    ApiError,
    AtlasClientError,
    AuthenticationExpired,
    AuthenticationFailed,
    AuthError,
    InvalidCredentials,
    MalformedResponse,
    NotAuthenticated,
    ServiceError,
    TransportError,
)
from atlas_client.session import AuthState, Identity, Session, User
from atlas_client.storage import MemoryStorage, SQLStorage

__all__ = [
    "ApiError",
    "App",
    "AtlasClientError",
    "AuthError",
    "AuthState",
    "AuthenticationExpired",
    "AuthenticationFailed",
    "Credentials",
    "DataApiOperation",
    "Identity",
    "InvalidCredentials",
    "MalformedResponse",
    "MemoryStorage",
    "MongoCollection",
    "Namespace",
    "NotAuthenticated",
    "SQLStorage",
    "ServiceError",
    "Session",
    "TransportError",
    "User",
]
