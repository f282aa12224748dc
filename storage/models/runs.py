"""
Module Run ORM Models.

============================================================
PURPOSE
============================================================
Stores module runs and the durable jobs that carry them to
the worker.

============================================================
DATA LIFECYCLE ROLE
============================================================
- ModuleRun: created QUEUED by the run ledger, moved through
  RUNNING to COMPLETED/FAILED by the worker, immutable after.
- ModuleRunJob: one row per publish, claimed and acknowledged
  by the queue worker.

============================================================
TRACEABILITY
============================================================
Runs reference their module by (module_key, module_version),
not by foreign key, so registry mutation never rewrites history.

============================================================
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import (
    DEFAULT_JOB_MAX_ATTEMPTS,
    EXECUTE_MODULE_RUN_JOB,
    MODULE_KEY_MAX_LENGTH,
    MODULE_RUNS_QUEUE,
    MODULE_VERSION_MAX_LENGTH,
    JobStatus,
    ModuleRunStatus,
)
from storage.models.base import Base, JsonDocument, SurrogateId, TimestampMixin


class ModuleRun(Base, TimestampMixin):
    """
    One execution attempt of a module against a target scope.

    ============================================================
    INVARIANTS
    ============================================================
    - module_version was enabled when the run was created
    - person_id is set iff the module is PERSON_LEVEL
    - no column changes once status is terminal

    ============================================================
    """

    __tablename__ = "module_runs"

    id: Mapped[int] = mapped_column(
        SurrogateId,
        primary_key=True,
        autoincrement=True,
        comment="Surrogate run id"
    )

    project_id: Mapped[int] = mapped_column(
        SurrogateId,
        nullable=False,
        comment="Owning project"
    )

    person_id: Mapped[Optional[int]] = mapped_column(
        SurrogateId,
        nullable=True,
        comment="Target person (PERSON_LEVEL runs only)"
    )

    triggered_by_user_id: Mapped[int] = mapped_column(
        SurrogateId,
        nullable=False,
        comment="User that requested the run"
    )

    module_key: Mapped[str] = mapped_column(
        String(MODULE_KEY_MAX_LENGTH),
        nullable=False,
        comment="Module key"
    )

    module_version: Mapped[str] = mapped_column(
        String(MODULE_VERSION_MAX_LENGTH),
        nullable=False,
        comment="Version frozen at creation"
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ModuleRunStatus.QUEUED.value,
        comment="QUEUED, RUNNING, COMPLETED, FAILED"
    )

    input_config: Mapped[Optional[Any]] = mapped_column(
        JsonDocument,
        nullable=True,
        comment="Payload handed to the module"
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the worker reported RUNNING"
    )

    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the worker reported a terminal status"
    )

    error: Mapped[Optional[Any]] = mapped_column(
        JsonDocument,
        nullable=True,
        comment="Failure details for FAILED runs"
    )

    __table_args__ = (
        Index("ix_module_runs_project_person_created", "project_id", "person_id", "created_at"),
        Index("ix_module_runs_status_created", "status", "created_at"),
    )

    @property
    def run_status(self) -> ModuleRunStatus:
        return ModuleRunStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<ModuleRun id={self.id} {self.module_key}@{self.module_version} "
            f"project={self.project_id} person={self.person_id} status={self.status}>"
        )


class ModuleRunJob(Base):
    """
    Durable queue row referencing exactly one run id.

    The worker re-reads the run from the ledger; nothing else
    travels with the job.
    """

    __tablename__ = "module_run_jobs"

    id: Mapped[int] = mapped_column(
        SurrogateId,
        primary_key=True,
        autoincrement=True,
    )

    run_id: Mapped[int] = mapped_column(
        SurrogateId,
        nullable=False,
        comment="Module run this job executes"
    )

    queue_name: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=MODULE_RUNS_QUEUE,
    )

    job_name: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=EXECUTE_MODULE_RUN_JOB,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="PENDING, CLAIMED, DONE, DEAD"
    )

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_JOB_MAX_ATTEMPTS,
    )

    enqueued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_module_run_jobs_queue_status", "queue_name", "status", "id"),
        Index("ix_module_run_jobs_run", "run_id"),
    )

    def __repr__(self) -> str:
        return f"<ModuleRunJob id={self.id} run={self.run_id} status={self.status} attempts={self.attempts}>"
