"""
Directory Repository.

Read-only existence checks over projects, persons, project
membership and users.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.directory import Person, PersonProject, Project, User
from storage.repositories.base import BaseRepository


class DirectoryRepository(BaseRepository[Project]):
    """Existence lookups for the entities a run references."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Project, "DirectoryRepository")

    def _exists(self, model: Any, record_id: int) -> bool:
        return self._execute_scalar(select(model.id).where(model.id == record_id)) is not None

    def project_exists(self, project_id: int) -> bool:
        return self._exists(Project, project_id)

    def person_exists(self, person_id: int) -> bool:
        return self._exists(Person, person_id)

    def user_exists(self, user_id: int) -> bool:
        return self._exists(User, user_id)

    def person_in_project(self, project_id: int, person_id: int) -> bool:
        stmt = select(PersonProject.id).where(
            PersonProject.project_id == project_id,
            PersonProject.person_id == person_id,
        )
        return self._execute_scalar(stmt) is not None
