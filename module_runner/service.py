"""
Module Runner - Service.

============================================================
RESPONSIBILITY
============================================================
The caller boundary of the module runner. The HTTP adapter and
the CLI only talk to this class.

- Registry operations (register, list, update)
- Run creation: validate + persist + commit, then dispatch
- Run reads (by id, per project, per person)
- Worker status reports

============================================================
TRANSACTIONS
============================================================
Each operation owns exactly one session_scope(). Run creation
commits before dispatch, so a DispatchFailure always refers to
a run that is already visible in QUEUED state.

============================================================
"""

import logging
from typing import Any, Dict, List, Optional

from .dispatch import DispatchGateway
from .ledger import RunLedger, RunStatusReporter
from .models import (
    ModuleFilters,
    ModuleRegistration,
    ModuleUpdate,
    RunListFilters,
    RunRequest,
)
from .registry import ModuleRegistry
from core.clock import ClockProtocol
from core.constants import (
    DEFAULT_RUN_LIST_LIMIT,
    MAX_RUN_LIST_LIMIT,
    ModuleRunStatus,
    ModuleScope,
)
from storage.database import Database
from storage.models.modules import ModuleDefinition
from storage.models.runs import ModuleRun


logger = logging.getLogger(__name__)


class ModuleRunnerService:
    """Facade over registry, ledger and dispatch gateway."""

    def __init__(
        self,
        database: Database,
        clock: ClockProtocol,
        gateway: DispatchGateway,
        run_list_default_limit: int = DEFAULT_RUN_LIST_LIMIT,
        run_list_max_limit: int = MAX_RUN_LIST_LIMIT,
    ):
        self._database = database
        self._clock = clock
        self._gateway = gateway
        self._default_limit = run_list_default_limit
        self._max_limit = run_list_max_limit

    def _ledger(self, session) -> RunLedger:
        return RunLedger(
            session,
            self._clock,
            default_limit=self._default_limit,
            max_limit=self._max_limit,
        )

    # =========================================================
    # MODULE REGISTRY
    # =========================================================

    def register_module(self, registration: ModuleRegistration) -> ModuleDefinition:
        with self._database.session_scope() as session:
            return ModuleRegistry(session, self._clock).register(registration)

    def list_modules(self, filters: Optional[ModuleFilters] = None) -> List[ModuleDefinition]:
        with self._database.session_scope() as session:
            return ModuleRegistry(session, self._clock).list(filters)

    def update_module(self, module_id: int, update: ModuleUpdate) -> ModuleDefinition:
        with self._database.session_scope() as session:
            return ModuleRegistry(session, self._clock).update(module_id, update)

    # =========================================================
    # RUN CREATION
    # =========================================================

    def create_person_run(
        self,
        project_id: int,
        person_id: Optional[int],
        triggered_by_user_id: int,
        module_key: str,
        version: Optional[str] = None,
        input_config: Optional[Any] = None,
    ) -> ModuleRun:
        """
        Create and enqueue a run of a PERSON_LEVEL module.

        Raises:
            ScopeMismatch: If the module is PROJECT_LEVEL, whatever the person
            DispatchFailure: If the run was stored but could not be enqueued
        """
        request = RunRequest(
            project_id=project_id,
            person_id=person_id,
            triggered_by_user_id=triggered_by_user_id,
            module_key=module_key,
            version=version,
            input_config=input_config,
        )
        return self._create_and_dispatch(request, ModuleScope.PERSON_LEVEL)

    def create_project_run(
        self,
        project_id: int,
        triggered_by_user_id: int,
        module_key: str,
        version: Optional[str] = None,
        input_config: Optional[Any] = None,
    ) -> ModuleRun:
        """Create and enqueue a run of a PROJECT_LEVEL module."""
        request = RunRequest(
            project_id=project_id,
            person_id=None,
            triggered_by_user_id=triggered_by_user_id,
            module_key=module_key,
            version=version,
            input_config=input_config,
        )
        return self._create_and_dispatch(request, ModuleScope.PROJECT_LEVEL)

    def create_run(self, request: RunRequest) -> ModuleRun:
        """Create and enqueue a run, with the scope taken from the module alone."""
        return self._create_and_dispatch(request, None)

    def _create_and_dispatch(
        self,
        request: RunRequest,
        expected_scope: Optional[ModuleScope],
    ) -> ModuleRun:
        logger.info(
            f"Creating module run [module={request.module_key}] "
            f"[project={request.project_id}] [person={request.person_id}] "
            f"[user={request.triggered_by_user_id}]"
        )

        # Phase 1: persist and commit
        with self._database.session_scope() as session:
            run = self._ledger(session).create_run(request, expected_scope=expected_scope)

        # Phase 2: publish
        self._gateway.enqueue(run.id)
        return run

    # =========================================================
    # RUN READS
    # =========================================================

    def get_run(self, run_id: int) -> ModuleRun:
        with self._database.session_scope() as session:
            return self._ledger(session).get_by_id(run_id)

    def list_runs(
        self,
        project_id: int,
        person_id: Optional[int] = None,
        filters: Optional[RunListFilters] = None,
    ) -> List[ModuleRun]:
        with self._database.session_scope() as session:
            return self._ledger(session).list(project_id, person_id, filters)

    # =========================================================
    # WORKER BOUNDARY
    # =========================================================

    def report_status(
        self,
        run_id: int,
        status: ModuleRunStatus,
        error: Optional[Dict[str, Any]] = None,
    ) -> ModuleRun:
        with self._database.session_scope() as session:
            return RunStatusReporter(session, self._clock).report_status(run_id, status, error)
