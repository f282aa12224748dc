"""
Module Run Job Repository.

============================================================
PURPOSE
============================================================
Persistence for the durable module run queue.

============================================================
CLAIMING
============================================================
claim_next locks the oldest claimable row with
FOR UPDATE SKIP LOCKED on PostgreSQL so concurrent workers
never claim the same job. SQLite ignores the lock clause and
relies on its single-writer model.

A row is claimable when it is PENDING, or CLAIMED with a
claimed_at older than the stale cutoff (its worker is gone).
Stale claims never count as open jobs.

============================================================
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from core.constants import EXECUTE_MODULE_RUN_JOB, JobStatus
from storage.models.runs import ModuleRunJob
from storage.repositories.base import BaseRepository


def _stale_claim(stale_before: datetime):
    return and_(
        ModuleRunJob.status == JobStatus.CLAIMED.value,
        ModuleRunJob.claimed_at < stale_before,
    )


def _live_claim(stale_before: datetime):
    return and_(
        ModuleRunJob.status == JobStatus.CLAIMED.value,
        ModuleRunJob.claimed_at >= stale_before,
    )


class ModuleRunJobRepository(BaseRepository[ModuleRunJob]):
    """Repository for durable queue rows."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ModuleRunJob, "ModuleRunJobRepository")

    def create_job(
        self,
        run_id: int,
        queue_name: str,
        max_attempts: int,
        enqueued_at: datetime,
    ) -> ModuleRunJob:
        entity = ModuleRunJob(
            run_id=run_id,
            queue_name=queue_name,
            job_name=EXECUTE_MODULE_RUN_JOB,
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            enqueued_at=enqueued_at,
        )
        return self._add(entity)

    def get_job(self, job_id: int) -> Optional[ModuleRunJob]:
        return self._get_by_id(job_id)

    def lock_next_claimable(
        self,
        queue_name: str,
        stale_before: datetime,
    ) -> Optional[ModuleRunJob]:
        stmt = (
            select(ModuleRunJob)
            .where(
                ModuleRunJob.queue_name == queue_name,
                or_(
                    ModuleRunJob.status == JobStatus.PENDING.value,
                    _stale_claim(stale_before),
                ),
            )
            .order_by(ModuleRunJob.id)
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        return self._execute_scalar(stmt)

    def count_open_for_run(self, run_id: int, stale_before: datetime) -> int:
        """PENDING jobs plus claims taken at or after stale_before."""
        stmt = (
            select(func.count())
            .select_from(ModuleRunJob)
            .where(
                ModuleRunJob.run_id == run_id,
                or_(
                    ModuleRunJob.status == JobStatus.PENDING.value,
                    _live_claim(stale_before),
                ),
            )
        )
        return int(self._execute_scalar(stmt) or 0)

    def list_stale_claims_for_run(
        self,
        run_id: int,
        stale_before: datetime,
    ) -> List[ModuleRunJob]:
        stmt = (
            select(ModuleRunJob)
            .where(ModuleRunJob.run_id == run_id, _stale_claim(stale_before))
            .order_by(ModuleRunJob.id)
            .with_for_update(skip_locked=True)
        )
        return self._execute_query(stmt)

    def count_by_status(self, queue_name: str, status: JobStatus) -> int:
        stmt = (
            select(func.count())
            .select_from(ModuleRunJob)
            .where(
                ModuleRunJob.queue_name == queue_name,
                ModuleRunJob.status == status.value,
            )
        )
        return int(self._execute_scalar(stmt) or 0)
