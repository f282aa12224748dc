"""
Module Runner - Dispatch Gateway.

============================================================
RESPONSIBILITY
============================================================
The sole write path from run creation into the job queue.

- Publish a job whose payload is exactly the run id
- Turn any publish failure into DispatchFailure
- Reconcile QUEUED runs that have no job (operator-invoked)

============================================================
QUEUE BACKENDS
============================================================
- DatabaseJobQueue: module_run_jobs table, claimed by QueueWorker
- CeleryJobQueue: send_task onto a Celery broker

A run is always committed before it is dispatched. A failed
publish leaves a visible QUEUED run with no job behind it, which
the orphaned run sweep can pick up later.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from .ledger import RunLedger
from core.clock import ClockProtocol
from core.constants import (
    DEFAULT_CLAIM_TIMEOUT_SECONDS,
    DEFAULT_JOB_MAX_ATTEMPTS,
    DEFAULT_ORPHAN_THRESHOLD_SECONDS,
    EXECUTE_MODULE_RUN_JOB,
    MODULE_RUNS_QUEUE,
    JobStatus,
)
from core.exceptions import DispatchFailure
from storage.database import Database
from storage.models import ModuleRunJob
from storage.repositories import ModuleRunJobRepository


logger = logging.getLogger(__name__)


# ============================================================
# QUEUE CONTRACT
# ============================================================

@dataclass(frozen=True)
class ClaimedJob:
    """A job handed to one worker."""

    job_id: int
    run_id: int
    attempts: int
    max_attempts: int


class JobQueue(ABC):
    """Durable queue of module run jobs."""

    queue_name: str = MODULE_RUNS_QUEUE

    @abstractmethod
    def publish(self, run_id: int) -> None:
        """Publish one job carrying the run id."""
        ...


class TrackedJobQueue(JobQueue):
    """
    A queue that can answer for the jobs of a given run.

    Only tracked queues can be reconciled by the orphaned run sweep.
    """

    @abstractmethod
    def has_open_job(self, run_id: int) -> bool:
        """Whether a pending or live claimed job exists for the run."""
        ...

    @abstractmethod
    def abandon_stale_claims(self, run_id: int) -> int:
        """Mark the run's abandoned claims DEAD and return how many."""
        ...


# ============================================================
# DATABASE QUEUE
# ============================================================

class DatabaseJobQueue(TrackedJobQueue):
    """
    Job queue stored in the module_run_jobs table.

    Every operation runs in its own transaction. A claim older than
    claim_timeout_seconds belongs to a worker that died; the job can
    be claimed again, or is DEAD once its attempts are used up.
    """

    def __init__(
        self,
        database: Database,
        clock: ClockProtocol,
        queue_name: str = MODULE_RUNS_QUEUE,
        max_attempts: int = DEFAULT_JOB_MAX_ATTEMPTS,
        claim_timeout_seconds: int = DEFAULT_CLAIM_TIMEOUT_SECONDS,
    ):
        self._database = database
        self._clock = clock
        self.queue_name = queue_name
        self._max_attempts = max_attempts
        self._claim_timeout_seconds = claim_timeout_seconds

    def _stale_before(self) -> datetime:
        return self._clock.seconds_ago(self._claim_timeout_seconds)

    def _mark_dead(self, job: ModuleRunJob, error: str) -> None:
        job.status = JobStatus.DEAD.value
        job.last_error = error[:2000]
        job.finished_at = self._clock.now()

    def publish(self, run_id: int) -> None:
        with self._database.session_scope() as session:
            job = ModuleRunJobRepository(session).create_job(
                run_id=run_id,
                queue_name=self.queue_name,
                max_attempts=self._max_attempts,
                enqueued_at=self._clock.now(),
            )
            logger.debug(f"Job published [job={job.id}] [run={run_id}] [queue={self.queue_name}]")

    def claim_next(self) -> Optional[ClaimedJob]:
        """Claim the oldest pending or abandoned job, or None if there is none."""
        stale_before = self._stale_before()

        with self._database.session_scope() as session:
            repo = ModuleRunJobRepository(session)
            while True:
                job = repo.lock_next_claimable(self.queue_name, stale_before)
                if job is None:
                    return None

                if job.status == JobStatus.CLAIMED.value:
                    if job.attempts >= job.max_attempts:
                        self._mark_dead(job, "Claim expired on final attempt")
                        session.flush()
                        logger.error(
                            f"Abandoned job dead after {job.attempts} attempts "
                            f"[job={job.id}] [run={job.run_id}]"
                        )
                        continue
                    logger.warning(
                        f"Reclaiming abandoned job [job={job.id}] [run={job.run_id}] "
                        f"[claimed_at={job.claimed_at}]"
                    )

                job.status = JobStatus.CLAIMED.value
                job.attempts += 1
                job.claimed_at = self._clock.now()
                session.flush()

                return ClaimedJob(
                    job_id=job.id,
                    run_id=job.run_id,
                    attempts=job.attempts,
                    max_attempts=job.max_attempts,
                )

    def acknowledge(self, job_id: int) -> None:
        """Mark a claimed job as done."""
        with self._database.session_scope() as session:
            job = ModuleRunJobRepository(session).get_job(job_id)
            if job is None or job.status != JobStatus.CLAIMED.value:
                return
            job.status = JobStatus.DONE.value
            job.finished_at = self._clock.now()

    def release(self, job_id: int, error: str) -> JobStatus:
        """
        Return a claimed job after an infrastructure failure.

        The job goes back to PENDING until it has used all its
        attempts, then becomes DEAD.
        """
        with self._database.session_scope() as session:
            job = ModuleRunJobRepository(session).get_job(job_id)
            if job is None:
                return JobStatus.DEAD
            if job.status != JobStatus.CLAIMED.value:
                return JobStatus(job.status)

            if job.attempts >= job.max_attempts:
                self._mark_dead(job, error)
                logger.error(
                    f"Job dead after {job.attempts} attempts [job={job_id}] [run={job.run_id}]"
                )
            else:
                job.last_error = error[:2000]
                job.status = JobStatus.PENDING.value
                job.claimed_at = None
                logger.warning(
                    f"Job released for retry [job={job_id}] [run={job.run_id}] "
                    f"[attempt={job.attempts}/{job.max_attempts}]"
                )
            return JobStatus(job.status)

    def has_open_job(self, run_id: int) -> bool:
        with self._database.session_scope() as session:
            repo = ModuleRunJobRepository(session)
            return repo.count_open_for_run(run_id, self._stale_before()) > 0

    def abandon_stale_claims(self, run_id: int) -> int:
        with self._database.session_scope() as session:
            jobs = ModuleRunJobRepository(session).list_stale_claims_for_run(
                run_id, self._stale_before()
            )
            for job in jobs:
                self._mark_dead(job, "Claim expired; run re-enqueued")
                logger.warning(f"Abandoned claim marked dead [job={job.id}] [run={run_id}]")
            return len(jobs)

    def pending_count(self) -> int:
        with self._database.session_scope() as session:
            return ModuleRunJobRepository(session).count_by_status(self.queue_name, JobStatus.PENDING)


# ============================================================
# CELERY QUEUE
# ============================================================

class CeleryJobQueue(JobQueue):
    """Publishes module run jobs as Celery tasks."""

    def __init__(self, celery_app: Any, queue_name: str = MODULE_RUNS_QUEUE):
        self._app = celery_app
        self.queue_name = queue_name

    def publish(self, run_id: int) -> None:
        result = self._app.send_task(
            EXECUTE_MODULE_RUN_JOB,
            args=[run_id],
            queue=self.queue_name,
        )
        logger.debug(f"Celery task sent [task={result.id}] [run={run_id}] [queue={self.queue_name}]")


# ============================================================
# DISPATCH GATEWAY
# ============================================================

class DispatchGateway:
    """Turns a committed run into a queued job."""

    def __init__(self, queue: JobQueue):
        self._queue = queue

    @property
    def queue(self) -> JobQueue:
        return self._queue

    def enqueue(self, run_id: int) -> None:
        """
        Publish the job for a committed run.

        Raises:
            DispatchFailure: If the queue rejects or fails the publish
        """
        try:
            self._queue.publish(run_id)
        except Exception as e:
            logger.error(
                f"Dispatch failed [run={run_id}] [queue={self._queue.queue_name}]: "
                f"{type(e).__name__}: {e}"
            )
            raise DispatchFailure(run_id, cause=e) from e

        logger.info(f"Module run enqueued [run={run_id}] [queue={self._queue.queue_name}]")


# ============================================================
# ORPHANED RUN SWEEP
# ============================================================

@dataclass
class SweepReport:
    """Outcome of one reconciliation pass."""

    examined: int = 0
    requeued: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    supported: bool = True


class OrphanedRunSweep:
    """
    Re-publishes QUEUED runs that have no open job.

    A job whose claim expired no longer counts as open; it is
    marked DEAD before the run is published again. Only tracked
    queues can be reconciled; for any other backend the sweep
    reports itself unsupported.
    """

    def __init__(
        self,
        database: Database,
        clock: ClockProtocol,
        gateway: DispatchGateway,
        threshold_seconds: int = DEFAULT_ORPHAN_THRESHOLD_SECONDS,
    ):
        self._database = database
        self._clock = clock
        self._gateway = gateway
        self._threshold_seconds = threshold_seconds

    def sweep(self, older_than_seconds: Optional[int] = None) -> SweepReport:
        report = SweepReport()
        queue = self._gateway.queue

        if not isinstance(queue, TrackedJobQueue):
            logger.warning(f"Orphan sweep not supported by queue backend {type(queue).__name__}")
            report.supported = False
            return report

        threshold = self._threshold_seconds if older_than_seconds is None else older_than_seconds
        cutoff = self._clock.seconds_ago(threshold)

        with self._database.session_scope() as session:
            candidates = RunLedger(session, self._clock).find_orphan_candidates(cutoff)
            run_ids = [run.id for run in candidates]

        for run_id in run_ids:
            report.examined += 1
            if queue.has_open_job(run_id):
                continue
            queue.abandon_stale_claims(run_id)
            try:
                self._gateway.enqueue(run_id)
                report.requeued.append(run_id)
            except DispatchFailure:
                report.failed.append(run_id)

        logger.info(
            f"Orphan sweep complete [examined={report.examined}] "
            f"[requeued={len(report.requeued)}] [failed={len(report.failed)}]"
        )
        return report
