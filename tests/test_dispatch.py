"""
Tests for the Dispatch Gateway and job queues.

Tests cover:
- Commit-then-publish and DispatchFailure
- DatabaseJobQueue claim / acknowledge / release / dead
- CeleryJobQueue publishing
- Orphaned run sweep
"""

from unittest.mock import MagicMock

import pytest

from conftest import PERSON_ID, PROJECT_ID, USER_ID
from core.constants import EXECUTE_MODULE_RUN_JOB, JobStatus, ModuleRunStatus
from core.exceptions import DispatchFailure, ModuleNotFound
from module_runner.dispatch import (
    CeleryJobQueue,
    DatabaseJobQueue,
    DispatchGateway,
    JobQueue,
    OrphanedRunSweep,
    TrackedJobQueue,
)
from module_runner.service import ModuleRunnerService
from storage.models import ModuleRunJob


class FailingQueue(JobQueue):
    """Queue whose broker is down."""

    def publish(self, run_id: int) -> None:
        raise ConnectionRefusedError("broker unavailable")


def _jobs(database):
    with database.session_scope() as session:
        return [
            (job.run_id, job.status, job.attempts)
            for job in session.query(ModuleRunJob).order_by(ModuleRunJob.id)
        ]


# =============================================================
# TEST: Dispatch Gateway
# =============================================================

class TestDispatchGateway:

    def test_run_creation_publishes_one_job(self, register, person_run, database):
        register("x-composer")
        run = person_run("x-composer")

        assert _jobs(database) == [(run.id, JobStatus.PENDING.value, 0)]

    def test_job_carries_queue_and_job_name(self, register, person_run, database):
        register("x-composer")
        person_run("x-composer")

        with database.session_scope() as session:
            job = session.query(ModuleRunJob).one()
            assert job.queue_name == "module-runs"
            assert job.job_name == EXECUTE_MODULE_RUN_JOB

    def test_publish_failure_raises_dispatch_failure(self, register, database, clock):
        service = ModuleRunnerService(database, clock, DispatchGateway(FailingQueue()))
        register("x-composer")

        with pytest.raises(DispatchFailure) as exc_info:
            service.create_person_run(PROJECT_ID, PERSON_ID, USER_ID, "x-composer")

        run_id = exc_info.value.run_id
        assert exc_info.value.context["cause_type"] == "ConnectionRefusedError"

        # The run was committed before publishing and stays visible
        run = service.get_run(run_id)
        assert run.status == ModuleRunStatus.QUEUED.value
        assert [r.id for r in service.list_runs(PROJECT_ID, PERSON_ID)] == [run_id]

    def test_validation_failure_publishes_nothing(self, register, database, clock):
        queue = MagicMock(spec=JobQueue)
        queue.queue_name = "module-runs"
        service = ModuleRunnerService(database, clock, DispatchGateway(queue))
        register("x-composer", is_enabled=False)

        with pytest.raises(ModuleNotFound):
            service.create_person_run(PROJECT_ID, PERSON_ID, USER_ID, "x-composer")

        queue.publish.assert_not_called()

    def test_enqueue_passes_only_run_id(self, register, database, clock):
        queue = MagicMock(spec=JobQueue)
        queue.queue_name = "module-runs"
        service = ModuleRunnerService(database, clock, DispatchGateway(queue))
        register("x-composer")

        run = service.create_person_run(PROJECT_ID, PERSON_ID, USER_ID, "x-composer")

        queue.publish.assert_called_once_with(run.id)


# =============================================================
# TEST: Database Job Queue
# =============================================================

class TestDatabaseJobQueue:

    def test_claim_in_publish_order(self, queue):
        queue.publish(11)
        queue.publish(12)

        first = queue.claim_next()
        second = queue.claim_next()

        assert (first.run_id, second.run_id) == (11, 12)
        assert first.attempts == 1
        assert queue.claim_next() is None

    def test_acknowledge(self, queue, database):
        queue.publish(11)
        job = queue.claim_next()

        queue.acknowledge(job.job_id)

        assert _jobs(database) == [(11, JobStatus.DONE.value, 1)]
        assert queue.has_open_job(11) is False

    def test_release_returns_job_to_pending(self, queue):
        queue.publish(11)
        job = queue.claim_next()

        assert queue.release(job.job_id, "OperationalError: db gone") == JobStatus.PENDING
        assert queue.pending_count() == 1

        again = queue.claim_next()
        assert again.job_id == job.job_id
        assert again.attempts == 2

    def test_job_dead_after_max_attempts(self, database, clock):
        queue = DatabaseJobQueue(database, clock, max_attempts=2)
        queue.publish(11)

        job = queue.claim_next()
        assert queue.release(job.job_id, "boom") == JobStatus.PENDING
        job = queue.claim_next()
        assert queue.release(job.job_id, "boom") == JobStatus.DEAD

        assert queue.claim_next() is None
        assert queue.has_open_job(11) is False

    def test_has_open_job(self, queue):
        assert queue.has_open_job(11) is False
        queue.publish(11)
        assert queue.has_open_job(11) is True
        queue.claim_next()
        assert queue.has_open_job(11) is True

    def test_live_claim_is_not_reclaimed(self, queue, clock):
        queue.publish(11)
        queue.claim_next()

        clock.advance(minutes=5)

        assert queue.claim_next() is None
        assert queue.has_open_job(11) is True

    def test_abandoned_claim_is_reclaimed(self, queue, clock):
        queue.publish(11)
        first = queue.claim_next()

        clock.advance(minutes=16)

        assert queue.has_open_job(11) is False
        again = queue.claim_next()
        assert again.job_id == first.job_id
        assert again.attempts == 2
        assert queue.has_open_job(11) is True

    def test_abandoned_claim_on_final_attempt_is_dead(self, database, clock):
        queue = DatabaseJobQueue(database, clock, max_attempts=1)
        queue.publish(11)
        queue.claim_next()

        clock.advance(minutes=16)

        assert queue.claim_next() is None
        assert _jobs(database) == [(11, JobStatus.DEAD.value, 1)]

    def test_claim_timeout_is_configurable(self, database, clock):
        queue = DatabaseJobQueue(database, clock, claim_timeout_seconds=60)
        queue.publish(11)
        queue.claim_next()

        clock.advance(seconds=61)

        assert queue.claim_next().attempts == 2

    def test_acknowledge_ignores_job_no_longer_claimed(self, queue, database, clock):
        queue.publish(11)
        job = queue.claim_next()
        clock.advance(minutes=16)
        assert queue.abandon_stale_claims(11) == 1

        queue.acknowledge(job.job_id)

        assert _jobs(database) == [(11, JobStatus.DEAD.value, 1)]

    def test_queues_are_isolated(self, database, clock):
        runs_queue = DatabaseJobQueue(database, clock, queue_name="module-runs")
        other_queue = DatabaseJobQueue(database, clock, queue_name="other")
        other_queue.publish(5)

        assert runs_queue.claim_next() is None
        assert other_queue.claim_next().run_id == 5


# =============================================================
# TEST: Celery Job Queue
# =============================================================

class TestCeleryJobQueue:

    def test_publish_sends_task(self):
        app = MagicMock()
        queue = CeleryJobQueue(app, queue_name="module-runs")

        queue.publish(42)

        app.send_task.assert_called_once_with(
            EXECUTE_MODULE_RUN_JOB, args=[42], queue="module-runs"
        )

    def test_broker_error_becomes_dispatch_failure(self):
        app = MagicMock()
        app.send_task.side_effect = OSError("connection refused")
        gateway = DispatchGateway(CeleryJobQueue(app))

        with pytest.raises(DispatchFailure) as exc_info:
            gateway.enqueue(42)
        assert exc_info.value.run_id == 42

    def test_is_not_a_tracked_queue(self):
        queue = CeleryJobQueue(MagicMock())
        assert not isinstance(queue, TrackedJobQueue)
        assert not hasattr(queue, "has_open_job")


# =============================================================
# TEST: Orphaned Run Sweep
# =============================================================

class TestOrphanedRunSweep:

    def test_requeues_old_run_without_job(self, register, database, clock, queue):
        register("x-composer")
        broken = ModuleRunnerService(database, clock, DispatchGateway(FailingQueue()))
        with pytest.raises(DispatchFailure) as exc_info:
            broken.create_person_run(PROJECT_ID, PERSON_ID, USER_ID, "x-composer")
        orphan_id = exc_info.value.run_id

        clock.advance(minutes=20)
        sweep = OrphanedRunSweep(database, clock, DispatchGateway(queue), threshold_seconds=900)
        report = sweep.sweep()

        assert report.examined == 1
        assert report.requeued == [orphan_id]
        assert queue.has_open_job(orphan_id) is True

    def test_skips_runs_with_open_job(self, register, person_run, database, clock, gateway):
        register("x-composer")
        person_run("x-composer")
        clock.advance(minutes=20)

        report = OrphanedRunSweep(database, clock, gateway).sweep()

        assert report.examined == 1
        assert report.requeued == []

    def test_requeues_run_whose_worker_died_after_claim(
        self, register, person_run, database, clock, queue, service
    ):
        register("x-composer")
        run = person_run("x-composer")
        queue.claim_next()

        clock.advance(hours=24)
        report = OrphanedRunSweep(database, clock, DispatchGateway(queue)).sweep()

        assert report.requeued == [run.id]
        assert service.get_run(run.id).status == ModuleRunStatus.QUEUED.value
        assert _jobs(database) == [
            (run.id, JobStatus.DEAD.value, 1),
            (run.id, JobStatus.PENDING.value, 0),
        ]
        assert queue.claim_next().run_id == run.id

    def test_skips_run_with_live_claim(self, register, person_run, database, clock, queue):
        register("x-composer")
        person_run("x-composer")
        clock.advance(minutes=20)
        queue.claim_next()

        report = OrphanedRunSweep(database, clock, DispatchGateway(queue)).sweep()

        assert report.examined == 1
        assert report.requeued == []

    def test_skips_recent_runs(self, register, database, clock, queue):
        register("x-composer")
        broken = ModuleRunnerService(database, clock, DispatchGateway(FailingQueue()))
        with pytest.raises(DispatchFailure):
            broken.create_person_run(PROJECT_ID, PERSON_ID, USER_ID, "x-composer")

        clock.advance(minutes=1)
        report = OrphanedRunSweep(database, clock, DispatchGateway(queue)).sweep()

        assert report.examined == 0

    def test_explicit_age_override(self, register, database, clock, queue):
        register("x-composer")
        broken = ModuleRunnerService(database, clock, DispatchGateway(FailingQueue()))
        with pytest.raises(DispatchFailure):
            broken.create_person_run(PROJECT_ID, PERSON_ID, USER_ID, "x-composer")

        clock.advance(minutes=1)
        report = OrphanedRunSweep(database, clock, DispatchGateway(queue)).sweep(
            older_than_seconds=30
        )

        assert len(report.requeued) == 1

    def test_unsupported_backend(self, database, clock):
        gateway = DispatchGateway(CeleryJobQueue(MagicMock()))
        report = OrphanedRunSweep(database, clock, gateway).sweep()
        assert report.supported is False
