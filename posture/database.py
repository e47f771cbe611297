"""Database engine and per-request sessions."""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from posture.models import Base


class Database:
    """Owns one SQLAlchemy engine and hands out sessions bound to it.

    The engine is built on first use so creating the application does not
    open a connection or import a database driver.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        if self.url.startswith("sqlite"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            # In-memory SQLite lives per connection; share one across threads
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite+pysqlite://"):
                kwargs["poolclass"] = StaticPool
            return create_engine(self.url, echo=self.echo, **kwargs)
        return create_engine(self.url, echo=self.echo, pool_pre_ping=True)

    def session(self) -> Session:
        """Open a new session."""
        if self._sessionmaker is None:
            self._sessionmaker = sessionmaker(bind=self.engine)
        return self._sessionmaker()

    def create_all(self) -> None:
        """Create every table that does not exist yet."""
        Base.metadata.create_all(self.engine)

    def ping(self) -> None:
        """Round-trip a trivial query; raises if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessionmaker = None


def get_session(request: Request) -> Iterator[Session]:
    """FastAPI dependency — one session per request, closed afterwards."""
    database: Database = request.app.state.database
    session = database.session()
    try:
        yield session
    finally:
        session.close()
