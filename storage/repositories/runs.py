"""
Module Run Repository.

============================================================
PURPOSE
============================================================
Persistence for module runs.

============================================================
DATA LIFECYCLE
============================================================
- Insert: QUEUED only, by the run ledger
- Status changes: compare-and-set on the current status, so a
  run in a terminal status can never be written again
- No deletes

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from core.constants import INITIAL_RUN_STATUS, ModuleRunStatus
from storage.models.runs import ModuleRun
from storage.repositories.base import BaseRepository


class ModuleRunRepository(BaseRepository[ModuleRun]):
    """Repository for module runs."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ModuleRun, "ModuleRunRepository")

    def create_run(
        self,
        project_id: int,
        person_id: Optional[int],
        triggered_by_user_id: int,
        module_key: str,
        module_version: str,
        input_config: Optional[Any],
        created_at: datetime,
    ) -> ModuleRun:
        entity = ModuleRun(
            project_id=project_id,
            person_id=person_id,
            triggered_by_user_id=triggered_by_user_id,
            module_key=module_key,
            module_version=module_version,
            status=INITIAL_RUN_STATUS.value,
            input_config=input_config,
            created_at=created_at,
            updated_at=created_at,
        )
        return self._add(entity)

    def get_run(self, run_id: int) -> Optional[ModuleRun]:
        return self._get_by_id(run_id)

    def list_runs(
        self,
        project_id: int,
        person_id: Optional[int],
        limit: int,
        status: Optional[str] = None,
        module_key: Optional[str] = None,
        project_level_only: bool = False,
    ) -> List[ModuleRun]:
        """
        Runs of one project, newest first.

        person_id narrows to one person. project_level_only keeps runs
        without a person.
        """
        stmt = select(ModuleRun).where(ModuleRun.project_id == project_id)
        if person_id is not None:
            stmt = stmt.where(ModuleRun.person_id == person_id)
        if project_level_only:
            stmt = stmt.where(ModuleRun.person_id.is_(None))
        if status is not None:
            stmt = stmt.where(ModuleRun.status == status)
        if module_key is not None:
            stmt = stmt.where(ModuleRun.module_key == module_key)
        stmt = stmt.order_by(ModuleRun.created_at.desc(), ModuleRun.id.desc()).limit(limit)
        return self._execute_query(stmt)

    def list_queued_before(self, cutoff: datetime, limit: int = 500) -> List[ModuleRun]:
        """QUEUED runs created before cutoff, oldest first."""
        stmt = (
            select(ModuleRun)
            .where(
                ModuleRun.status == ModuleRunStatus.QUEUED.value,
                ModuleRun.created_at < cutoff,
            )
            .order_by(ModuleRun.created_at, ModuleRun.id)
            .limit(limit)
        )
        return self._execute_query(stmt)

    def transition_status(
        self,
        run_id: int,
        from_statuses: Iterable[ModuleRunStatus],
        values: Dict[str, Any],
    ) -> bool:
        """
        Update a run only if its current status is one of from_statuses.

        Returns:
            True if the row was updated
        """
        stmt = (
            update(ModuleRun)
            .where(
                ModuleRun.id == run_id,
                ModuleRun.status.in_([s.value for s in from_statuses]),
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_update(stmt, "transition_status") == 1
