"""
Session storage backends: where a logged-in session survives between App instances.
MemoryStorage for tests and short-lived scripts; SQLStorage (SQLAlchemy, SQLite by default) for persistence.
"""
import json
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from atlas_client.config import SESSION_DATABASE_URL
from atlas_client.session import Session


class SessionStorage(Protocol):
    def load(self) -> Session | None: ...

    def save(self, session: Session) -> None: ...

    def remove(self) -> None: ...


class MemoryStorage:
    """Process-local storage. Several MemoryStorage objects can share one dict to simulate a reload."""

    def __init__(self, backing: dict | None = None, key: str = "session"):
        self._data = backing if backing is not None else {}
        self._key = key

    def load(self) -> Session | None:
        raw = self._data.get(self._key)
        return Session.from_dict(raw) if raw else None

    def save(self, session: Session) -> None:
        self._data[self._key] = session.to_dict()

    def remove(self) -> None:
        self._data.pop(self._key, None)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class StoredSession(Base):
    __tablename__ = "sessions"

    # One row per storage key (normally the app id)
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)  # Session.to_dict() as JSON
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)


def make_engine(database_url: str):
    # SQLite: in-memory needs StaticPool so all connections share the same DB
    if database_url.startswith("sqlite:///:memory:") or database_url == "sqlite://":
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
    return create_engine(database_url, connect_args=connect_args)


class SQLStorage:
    """Persists the session for one key in a SQL table. Tables are created on first use."""

    def __init__(self, key: str, database_url: str = SESSION_DATABASE_URL, engine=None):
        self.key = key
        self.engine = engine if engine is not None else make_engine(database_url)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)

    def load(self) -> Session | None:
        with self._session_factory() as db:
            row = db.get(StoredSession, self.key)
            if row is None:
                return None
            return Session.from_dict(json.loads(row.data))

    def save(self, session: Session) -> None:
        with self._session_factory() as db:
            row = db.get(StoredSession, self.key)
            payload = json.dumps(session.to_dict())
            if row is None:
                db.add(StoredSession(key=self.key, data=payload))
            else:
                row.data = payload
            db.commit()

    def remove(self) -> None:
        with self._session_factory() as db:
            row = db.get(StoredSession, self.key)
            if row is not None:
                db.delete(row)
                db.commit()
