"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Owns the SQLAlchemy engine and session factory.

- Creates the engine (pooled for servers, static for in-memory SQLite)
- Hands out sessions with explicit transaction boundaries
- Creates tables and verifies connectivity

============================================================
DESIGN PRINCIPLES
============================================================
- One Database instance per process, passed by reference
- No module-level engine or session globals
- Commit on success, rollback on ANY exception
- Hard failures on connection and schema errors

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import DatabaseError
from storage.models.base import Base


logger = logging.getLogger(__name__)


def _redact(url: str) -> str:
    return url.split("@")[-1]


class Database:
    """
    Engine and session factory for the module runner.

    Usage:
        database = Database("postgresql://user:pw@host/db")
        with database.session_scope() as session:
            session.add(record)
            # Commits automatically at end
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ) -> None:
        self._url = url
        self._engine = create_engine(url, echo=echo, future=True, **self._engine_options(
            url, pool_size, max_overflow, pool_timeout, pool_recycle
        ))

        if self._engine.dialect.name == "sqlite":
            @event.listens_for(self._engine, "connect")
            def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.info(f"Database engine created for: {_redact(url)}")

    @staticmethod
    def _engine_options(
        url: str,
        pool_size: int,
        max_overflow: int,
        pool_timeout: int,
        pool_recycle: int,
    ) -> Dict[str, Any]:
        if url.startswith("sqlite"):
            options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url.rstrip("/") == "sqlite:":
                # Every session must see the same in-memory database.
                options["poolclass"] = StaticPool
            return options

        return {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
            "pool_pre_ping": True,
        }

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    # =========================================================
    # SESSIONS
    # =========================================================

    def new_session(self) -> Session:
        """
        Get a new session.

        IMPORTANT: Caller is responsible for committing/closing.
        Prefer session_scope() instead.
        """
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for explicit transaction boundaries.

        Commits only if no exception occurs.
        Rolls back on ANY exception and re-raises it unchanged.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.debug(f"Rolling back transaction: {type(e).__name__}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================
    # INITIALIZATION
    # =========================================================

    def verify_connection(self) -> bool:
        """
        Verify database connection is working.

        Raises:
            DatabaseError if connection fails
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified")
            return True
        except OperationalError as e:
            logger.error(f"Database connection failed: {e}")
            raise DatabaseError(
                f"Cannot connect to database: {_redact(self._url)}", cause=e
            ) from e

    def create_all(self) -> None:
        """
        Create all tables defined in ORM models.

        Raises:
            DatabaseError if table creation fails
        """
        # Registers every model with Base.metadata
        import storage.models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self._engine)
            logger.info(f"Database tables ready: {', '.join(sorted(Base.metadata.tables))}")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseError("Table creation failed", cause=e) from e

    def dispose(self) -> None:
        self._engine.dispose()
