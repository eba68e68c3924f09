"""Database setup for the users table."""

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


class DatabaseClosedError(SQLAlchemyError):
    """Raised when a closed Database is asked for a connection."""


def create_db_engine(
    url: str,
    pool_size: int = 10,
    max_overflow: int = 5,
    connect_timeout: int = 10,
) -> Engine:
    """Build a pooled engine for ``url``."""
    if url.startswith("sqlite"):
        # Handlers run on FastAPI's threadpool.
        connect_args = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            return create_engine(
                url,
                poolclass=StaticPool,
                connect_args=connect_args,
                future=True,
            )
        return create_engine(url, connect_args=connect_args, future=True)

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args["connect_timeout"] = connect_timeout
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        connect_args=connect_args,
        future=True,
    )


class Database:
    """Owns the connection pool and session factory for one process.

    Built once at wiring time and handed to :func:`userapi.api.create_app`,
    which stores it on ``app.state`` for the request handlers.
    """

    def __init__(self, url: str, **engine_options) -> None:
        self.url = url
        self.engine = create_db_engine(url, **engine_options)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, future=True
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise DatabaseClosedError("database pool is closed")

    def init_db(self) -> None:
        """Connect and create the users table if it does not exist."""
        self.ping()
        logger.info("Connected to the database")
        # Register the models on Base before creating tables.
        from .models import user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Checked for users table and created if not present")

    def session(self) -> Session:
        self._ensure_open()
        return self._session_factory()

    def ping(self) -> None:
        """Round-trip a no-op statement; raises on any storage failure."""
        self._ensure_open()
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.engine.dispose()
        logger.info("Database pool closed")
