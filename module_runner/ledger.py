"""
Module Runner - Run Ledger.

============================================================
RESPONSIBILITY
============================================================
Source of truth for module run state.

- Create runs: resolve version, validate scope, persist QUEUED
- Read runs by id and list them per project/person
- Report worker status changes through a narrow state machine

============================================================
STATE MACHINE
============================================================
QUEUED --(worker picks up job)--> RUNNING --(success)--> COMPLETED
                                          --(failure)--> FAILED

Only the worker moves a run forward (RunStatusReporter). Every
status write is a compare-and-set on the current status, so a
terminal run is never written again.

============================================================
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .models import RunListFilters, RunRequest
from .registry import ModuleRegistry
from .resolver import VersionResolver
from .scope import ScopeValidator
from core.clock import ClockProtocol
from core.constants import (
    DEFAULT_RUN_LIST_LIMIT,
    MAX_RUN_LIST_LIMIT,
    ModuleRunStatus,
    ModuleScope,
    allowed_sources,
)
from core.exceptions import (
    InvalidRunQuery,
    InvalidStatusTransition,
    RunNotFound,
    ScopeMismatch,
)
from storage.models.runs import ModuleRun
from storage.repositories import ModuleRunRepository


logger = logging.getLogger(__name__)


# ============================================================
# RUN LEDGER
# ============================================================

class RunLedger:
    """
    Creates and queries module runs inside one session.

    create_run only flushes; committing is the caller's job and
    must happen before the run is dispatched.
    """

    def __init__(
        self,
        session: Session,
        clock: ClockProtocol,
        default_limit: int = DEFAULT_RUN_LIST_LIMIT,
        max_limit: int = MAX_RUN_LIST_LIMIT,
    ):
        self._clock = clock
        self._runs = ModuleRunRepository(session)
        self._resolver = VersionResolver(ModuleRegistry(session, clock))
        self._validator = ScopeValidator(session)
        self._default_limit = default_limit
        self._max_limit = max_limit

    # =========================================================
    # CREATE
    # =========================================================

    def create_run(
        self,
        request: RunRequest,
        expected_scope: Optional[ModuleScope] = None,
    ) -> ModuleRun:
        """
        Create a QUEUED run bound to a concrete module version.

        Args:
            request: The run request
            expected_scope: Scope the calling endpoint serves, if any

        Raises:
            ModuleNotFound, ScopeMismatch, ProjectNotFound,
            PersonNotFound, PersonNotInProject, ActorNotFound
        """
        definition = self._resolver.resolve(request.module_key, request.version)

        if expected_scope is not None and definition.scope != expected_scope.value:
            raise ScopeMismatch(
                definition.module_key,
                definition.scope,
                f"this operation only accepts {expected_scope.value} modules",
                person_id=request.person_id,
            )

        self._validator.validate(
            project_id=request.project_id,
            person_id=request.person_id,
            triggered_by_user_id=request.triggered_by_user_id,
            definition=definition,
        )

        run = self._runs.create_run(
            project_id=request.project_id,
            person_id=request.person_id,
            triggered_by_user_id=request.triggered_by_user_id,
            module_key=definition.module_key,
            module_version=definition.version,
            input_config=request.input_config,
            created_at=self._clock.now(),
        )

        logger.info(
            f"Module run created [run={run.id}] "
            f"[module={run.module_key}@{run.module_version}] "
            f"[project={run.project_id}] [person={run.person_id}]"
        )
        return run

    # =========================================================
    # READ
    # =========================================================

    def get_by_id(self, run_id: int) -> ModuleRun:
        run = self._runs.get_run(run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run

    def list(
        self,
        project_id: int,
        person_id: Optional[int] = None,
        filters: Optional[RunListFilters] = None,
    ) -> List[ModuleRun]:
        """
        List runs newest first.

        Without a person every run of the project is listed.

        Raises:
            InvalidRunQuery: If the limit is below 1 or above the maximum
        """
        filters = filters or RunListFilters()
        limit = self._default_limit if filters.limit is None else filters.limit

        if limit < 1:
            raise InvalidRunQuery("limit", "must be at least 1", value=limit)
        if limit > self._max_limit:
            raise InvalidRunQuery("limit", f"must not exceed {self._max_limit}", value=limit)
        if person_id is not None and filters.project_level_only:
            raise InvalidRunQuery(
                "project_level_only", "cannot be combined with a person", value=True
            )

        return self._runs.list_runs(
            project_id=project_id,
            person_id=person_id,
            limit=limit,
            status=filters.status.value if filters.status else None,
            module_key=filters.module_key,
            project_level_only=filters.project_level_only,
        )

    def find_orphan_candidates(self, older_than: datetime) -> List[ModuleRun]:
        """QUEUED runs created before the cutoff."""
        return self._runs.list_queued_before(older_than)


# ============================================================
# STATUS REPORTER
# ============================================================

class RunStatusReporter:
    """
    The worker's only write path into module runs.

    Allowed: QUEUED -> RUNNING, RUNNING -> COMPLETED, RUNNING -> FAILED.
    """

    def __init__(self, session: Session, clock: ClockProtocol):
        self._runs = ModuleRunRepository(session)
        self._clock = clock

    def report_status(
        self,
        run_id: int,
        status: ModuleRunStatus,
        error: Optional[Dict[str, Any]] = None,
    ) -> ModuleRun:
        """
        Move a run to `status`.

        Raises:
            RunNotFound: If the run does not exist
            InvalidStatusTransition: If the current status does not allow it
        """
        status = ModuleRunStatus(status)
        sources = allowed_sources(status)
        now = self._clock.now()

        values: Dict[str, Any] = {"status": status.value, "updated_at": now}
        if status == ModuleRunStatus.RUNNING:
            values["started_at"] = now
        if status.is_terminal:
            values["finished_at"] = now
        if status == ModuleRunStatus.FAILED:
            values["error"] = error or {"message": "Module run failed", "type": "Error"}

        updated = bool(sources) and self._runs.transition_status(run_id, sources, values)

        run = self._runs.get_run(run_id)
        if run is None:
            raise RunNotFound(run_id)

        if not updated:
            logger.warning(
                f"Rejected status transition [run={run_id}] "
                f"[from={run.status}] [to={status.value}]"
            )
            raise InvalidStatusTransition(run_id, run.status, status.value)

        logger.info(f"Module run status changed [run={run_id}] [status={status.value}]")
        return run
