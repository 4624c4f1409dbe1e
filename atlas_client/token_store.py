"""
In-memory holder of the current Session, mirrored to a SessionStorage.
The in-memory copy is authoritative; storage errors are logged and swallowed.
"""
import logging

from atlas_client.session import Session
from atlas_client.storage import MemoryStorage, SessionStorage

logger = logging.getLogger(__name__)


class TokenStore:
    def __init__(self, storage: SessionStorage | None = None):
        self.storage = storage if storage is not None else MemoryStorage()
        self._session: Session | None = None

    def get(self) -> Session | None:
        return self._session

    def set(self, session: Session) -> None:
        self._session = session
        try:
            self.storage.save(session)
        except Exception as e:
            logger.warning("Failed to persist session for user_id=%s: %s", session.user_id, e)

    def clear(self) -> None:
        self._session = None
        try:
            self.storage.remove()
        except Exception as e:
            logger.warning("Failed to remove persisted session: %s", e)

    def restore(self) -> Session | None:
        """Load a persisted session into memory (startup). Unreadable storage counts as no session."""
        try:
            session = self.storage.load()
        except Exception as e:
            logger.warning("Failed to load persisted session: %s", e)
            return None
        if session is not None:
            self._session = session
        return session
