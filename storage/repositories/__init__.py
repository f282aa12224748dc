"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access goes through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. One repository per table group
2. Session Injection: sessions come from the owning service
3. Repositories flush, services commit
4. Exception Handling: all DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- ModuleDefinitionRepository: module registry catalog
- ModuleRunRepository: module runs and status transitions
- ModuleRunJobRepository: durable job queue rows
- DirectoryRepository: project/person/user existence checks

============================================================
"""

from storage.repositories.exceptions import (
    RepositoryException,
    DuplicateRecordError,
    IntegrityError,
    ConnectionError,
    QueryError,
)

from storage.repositories.base import BaseRepository

from storage.repositories.modules import ModuleDefinitionRepository
from storage.repositories.runs import ModuleRunRepository
from storage.repositories.jobs import ModuleRunJobRepository
from storage.repositories.directory import DirectoryRepository

__all__ = [
    "RepositoryException",
    "DuplicateRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "BaseRepository",
    "ModuleDefinitionRepository",
    "ModuleRunRepository",
    "ModuleRunJobRepository",
    "DirectoryRepository",
]
