"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Wraps SQLAlchemy/database failures with the repository and
operation that hit them. Repositories never let a raw driver
error escape; services translate the few they expect (unique
violations) into domain errors and let the rest propagate.

============================================================
"""

from typing import Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.

    Carries the repository name and operation so the log line
    alone identifies where persistence failed.
    """

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")


class DuplicateRecordError(RepositoryException):
    """A unique constraint rejected an insert."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Unique constraint violated: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error},
        )


class IntegrityError(RepositoryException):
    """A foreign key, not-null or check constraint rejected a write."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Integrity constraint violated: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error},
        )


class ConnectionError(RepositoryException):
    """The database could not be reached."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error},
        )


class QueryError(RepositoryException):
    """Any other failure while executing a statement."""

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error},
        )
