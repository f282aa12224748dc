"""
Module Runner - Scope Validator.

============================================================
RESPONSIBILITY
============================================================
Confirms that a run request fits the resolved module's scope
and that every referenced entity exists.

Check order:
1. Scope shape (no I/O)
   - PROJECT_LEVEL with a person  -> ScopeMismatch
   - PERSON_LEVEL without a person -> PersonNotFound
2. Project exists                  -> ProjectNotFound
3. PERSON_LEVEL only
   - person exists                 -> PersonNotFound
   - person attached to project    -> PersonNotInProject
4. Triggering user exists          -> ActorNotFound

============================================================
"""

from typing import Optional

from sqlalchemy.orm import Session

from core.constants import ModuleScope
from core.exceptions import (
    ActorNotFound,
    PersonNotFound,
    PersonNotInProject,
    ProjectNotFound,
    ScopeMismatch,
)
from storage.models.modules import ModuleDefinition
from storage.repositories import DirectoryRepository


class ScopeValidator:
    """Synchronous referential and scope checks, run before any write."""

    def __init__(self, session: Session):
        self._directory = DirectoryRepository(session)

    def validate(
        self,
        project_id: int,
        person_id: Optional[int],
        triggered_by_user_id: int,
        definition: ModuleDefinition,
    ) -> None:
        scope = ModuleScope(definition.scope)

        # Shape
        if scope == ModuleScope.PROJECT_LEVEL and person_id is not None:
            raise ScopeMismatch(
                definition.module_key,
                scope.value,
                "a project-level module cannot run against a person",
                person_id=person_id,
            )
        if scope == ModuleScope.PERSON_LEVEL and person_id is None:
            raise PersonNotFound(
                None,
                message=f"Module {definition.module_key} is person-level and requires a person",
            )

        # References
        if not self._directory.project_exists(project_id):
            raise ProjectNotFound(project_id)

        if scope == ModuleScope.PERSON_LEVEL:
            if not self._directory.person_exists(person_id):
                raise PersonNotFound(person_id)
            if not self._directory.person_in_project(project_id, person_id):
                raise PersonNotInProject(project_id, person_id)

        if not self._directory.user_exists(triggered_by_user_id):
            raise ActorNotFound(triggered_by_user_id)
