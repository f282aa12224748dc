"""
Module Runner Package - Orchestration Core.

============================================================
PACKAGE OVERVIEW
============================================================
Registry of versioned enrichment modules plus the run ledger
that schedules module executions onto a durable job queue.

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                 ModuleRunnerService                 |
    |-----------------------------------------------------|
    |  ModuleRegistry   |  versioned module catalog       |
    |  VersionResolver  |  latest enabled version         |
    |  ScopeValidator   |  project/person/user checks     |
    |  RunLedger        |  run creation and queries       |
    |  DispatchGateway  |  commit-then-publish            |
    |  BootstrapSeeder  |  idempotent catalog seeding     |
    +-----------------------------------------------------+

Control flow:
    caller -> resolve -> validate -> persist QUEUED -> commit
           -> enqueue job(run_id) -> worker -> RUNNING -> COMPLETED | FAILED

============================================================
"""

from .models import (
    ModuleFilters,
    ModuleRegistration,
    ModuleUpdate,
    RunListFilters,
    RunRequest,
)
from .registry import ModuleRegistry
from .resolver import VersionResolver
from .scope import ScopeValidator
from .ledger import RunLedger, RunStatusReporter
from .dispatch import (
    CeleryJobQueue,
    ClaimedJob,
    DatabaseJobQueue,
    DispatchGateway,
    JobQueue,
    OrphanedRunSweep,
    SweepReport,
    TrackedJobQueue,
)
from .seeder import DEFAULT_MODULE_CATALOG, BootstrapSeeder, SeedReport
from .service import ModuleRunnerService

__all__ = [
    "ModuleFilters",
    "ModuleRegistration",
    "ModuleUpdate",
    "RunListFilters",
    "RunRequest",
    "ModuleRegistry",
    "VersionResolver",
    "ScopeValidator",
    "RunLedger",
    "RunStatusReporter",
    "CeleryJobQueue",
    "ClaimedJob",
    "DatabaseJobQueue",
    "DispatchGateway",
    "JobQueue",
    "OrphanedRunSweep",
    "SweepReport",
    "TrackedJobQueue",
    "DEFAULT_MODULE_CATALOG",
    "BootstrapSeeder",
    "SeedReport",
    "ModuleRunnerService",
]
