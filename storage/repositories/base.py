"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories including:
- Session injection
- Error wrapping into repository exceptions
- Common add/get/query helpers
- Per-repository logging

============================================================
USAGE
============================================================
All domain repositories inherit from BaseRepository. The
session is injected by the service that owns the transaction;
repositories flush but never commit.

============================================================
"""

import logging
from typing import Any, Generic, List, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
)


T = TypeVar("T", bound=Base)

_UNIQUE_MARKERS = ("unique", "duplicate")


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: Session):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: SQLAlchemyError,
        operation: str,
        context: Optional[dict] = None
    ) -> NoReturn:
        """
        Wrap a database error in a repository exception.

        Raises:
            RepositoryException: Always
        """
        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context or {}},
        )

        if isinstance(error, OperationalError):
            raise ConnectionError(self._repository_name, operation, str(error)) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error.orig).lower()
            if any(marker in error_str for marker in _UNIQUE_MARKERS):
                raise DuplicateRecordError(self._repository_name, operation, str(error.orig)) from error
            raise IntegrityError(self._repository_name, operation, str(error.orig)) from error

        raise QueryError(self._repository_name, operation, str(error)) from error

    def _add(self, entity: T) -> T:
        """Add an entity and flush so generated ids are populated."""
        try:
            self._session.add(entity)
            self._session.flush()
            self._logger.debug(f"Added entity: {entity}")
            return entity
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add", {"entity": str(entity)})

    def _get_by_id(self, record_id: int) -> Optional[T]:
        try:
            return self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", {"id": record_id})

    def _execute_query(self, stmt: Any) -> List[T]:
        try:
            return list(self._session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        try:
            return self._session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")

    def _execute_update(self, stmt: Any, operation: str) -> int:
        """Execute an UPDATE and return the affected row count."""
        try:
            result = self._session.execute(stmt)
            self._session.flush()
            return result.rowcount
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
