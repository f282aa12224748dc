"""
Worker - Module Run Consumer.

============================================================
RESPONSIBILITY
============================================================
Executes one dequeued module run and reports its status.

1. Load the run (missing run -> RunNotFound, job retried)
2. Report RUNNING (rejected transition -> duplicate delivery, skipped)
3. Execute the handler registered for the module key
4. Report COMPLETED, or FAILED with {message, type}

============================================================
RETRY POLICY
============================================================
- Module failures are final: the run becomes FAILED and is
  never re-executed. A re-execution is a new run.
- Infrastructure failures (database, missing run) propagate to
  QueueWorker, which releases the job for another attempt until
  it runs out of attempts.

============================================================
"""

import logging
import threading
from enum import Enum
from typing import Optional

from .handlers import HandlerRegistry, RunContext
from core.clock import ClockProtocol
from core.constants import ModuleRunStatus
from core.exceptions import InvalidStatusTransition, RunNotFound
from module_runner.dispatch import DatabaseJobQueue
from module_runner.ledger import RunStatusReporter
from storage.database import Database
from storage.repositories import ModuleRunRepository


logger = logging.getLogger(__name__)


class ProcessOutcome(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# ============================================================
# CONSUMER
# ============================================================

class ModuleRunConsumer:
    """Runs one module run through RUNNING to a terminal status."""

    def __init__(
        self,
        database: Database,
        clock: ClockProtocol,
        handlers: HandlerRegistry,
    ):
        self._database = database
        self._clock = clock
        self._handlers = handlers

    def process(self, run_id: int) -> ProcessOutcome:
        with self._database.session_scope() as session:
            run = ModuleRunRepository(session).get_run(run_id)
            if run is None:
                raise RunNotFound(run_id)
            context = RunContext.from_run(run)

        try:
            self._report(run_id, ModuleRunStatus.RUNNING)
        except InvalidStatusTransition as e:
            logger.warning(
                f"Skipping module run already past QUEUED [run={run_id}] "
                f"[status={e.from_status}]"
            )
            return ProcessOutcome.SKIPPED

        logger.info(
            f"Module run started [run={run_id}] "
            f"[module={context.module_key}@{context.module_version}]"
        )

        try:
            handler = self._handlers.get(context.module_key)
            result = handler.execute(context)
        except Exception as e:
            logger.error(
                f"Module run failed [run={run_id}] [module={context.module_key}]: "
                f"{type(e).__name__}: {e}"
            )
            self._report(
                run_id,
                ModuleRunStatus.FAILED,
                error={"message": str(e), "type": type(e).__name__},
            )
            return ProcessOutcome.FAILED

        self._report(run_id, ModuleRunStatus.COMPLETED)
        logger.info(f"Module run completed [run={run_id}] [result={result}]")
        return ProcessOutcome.COMPLETED

    def _report(self, run_id: int, status: ModuleRunStatus, error: Optional[dict] = None) -> None:
        with self._database.session_scope() as session:
            RunStatusReporter(session, self._clock).report_status(run_id, status, error)


# ============================================================
# QUEUE WORKER
# ============================================================

class QueueWorker:
    """Polls a DatabaseJobQueue and feeds jobs to the consumer."""

    def __init__(
        self,
        queue: DatabaseJobQueue,
        consumer: ModuleRunConsumer,
        poll_interval_seconds: float = 2.0,
    ):
        self._queue = queue
        self._consumer = consumer
        self._poll_interval = poll_interval_seconds
        self._stop = threading.Event()

    def run_once(self) -> bool:
        """
        Process at most one job.

        Returns:
            True if a job was claimed
        """
        job = self._queue.claim_next()
        if job is None:
            return False

        try:
            outcome = self._consumer.process(job.run_id)
        except Exception as e:
            logger.error(
                f"Job processing failed [job={job.job_id}] [run={job.run_id}] "
                f"[attempt={job.attempts}/{job.max_attempts}]: {type(e).__name__}: {e}"
            )
            self._queue.release(job.job_id, f"{type(e).__name__}: {e}")
            return True

        self._queue.acknowledge(job.job_id)
        logger.debug(f"Job acknowledged [job={job.job_id}] [outcome={outcome.value}]")
        return True

    def run_forever(self, max_jobs: Optional[int] = None) -> int:
        """Process jobs until stopped (or max_jobs handled). Returns jobs handled."""
        handled = 0
        logger.info(f"Worker started [queue={self._queue.queue_name}]")

        while not self._stop.is_set():
            if max_jobs is not None and handled >= max_jobs:
                break
            if self.run_once():
                handled += 1
            else:
                self._stop.wait(self._poll_interval)

        logger.info(f"Worker stopped [handled={handled}]")
        return handled

    def stop(self) -> None:
        self._stop.set()
