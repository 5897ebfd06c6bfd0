"""
Database engine and session management using SQLAlchemy.

StorageService owns the connection to the dbchat store (embeddings and
query logs). create_database_engine() is shared with the target database
so both ends get the same SQLite handling.
"""
import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dbchat.core.log_utils import log_info
from dbchat.models.database import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for a database URL.

    In-memory SQLite gets a single shared connection so that every session
    sees the same database; file-backed SQLite is switched to WAL mode.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True)

    if _is_memory_sqlite(url):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if url.database:
        directory = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(directory, exist_ok=True)

    engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_wal_mode(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


class StorageService:
    """
    Session-per-operation access to the dbchat store.

    Usage:
        storage = StorageService("sqlite:///dbchat.sqlite")
        storage.initialize()
        with storage.get_session() as session:
            session.add(record)
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        """
        Args:
            database_url: SQLAlchemy URL of the store
            engine: Pre-built engine (takes precedence over database_url)
        """
        if database_url is None and engine is None:
            raise ValueError("StorageService needs a database_url or an engine")

        self.database_url = database_url
        self._engine = engine
        self._session_factory = None
        self._initialized = False

    @property
    def engine(self) -> Engine:
        """Lazy-load database engine."""
        if self._engine is None:
            self._engine = create_database_engine(self.database_url)
        return self._engine

    @property
    def session_factory(self):
        """Lazy-load session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._session_factory

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Get a database session with automatic commit/rollback.

        Usage:
            with storage.get_session() as session:
                session.query(SchemaEmbedding).count()
        """
        if not self._initialized:
            self.initialize()

        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def initialize(self) -> None:
        """
        Create the store tables if they are missing.

        Safe to call multiple times.
        """
        if self._initialized:
            return

        Base.metadata.create_all(self.engine)
        self._initialized = True
        log_info("Storage", f"Store ready ({self.engine.url.get_backend_name()})")

    def ping(self) -> bool:
        """Check that the store answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        """Dispose of pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            logger.debug("Storage engine disposed")
