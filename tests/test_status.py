"""
Tests for the run status state machine.

QUEUED -> RUNNING -> COMPLETED | FAILED, nothing else.
"""

import pytest

from core.constants import ModuleRunStatus, allowed_sources
from core.exceptions import InvalidStatusTransition, RunNotFound


@pytest.fixture
def run(register, person_run):
    register("x-composer")
    return person_run("x-composer")


# =============================================================
# TEST: State machine definition
# =============================================================

class TestStateMachine:

    def test_terminal_statuses(self):
        assert ModuleRunStatus.COMPLETED.is_terminal
        assert ModuleRunStatus.FAILED.is_terminal
        assert not ModuleRunStatus.QUEUED.is_terminal
        assert not ModuleRunStatus.RUNNING.is_terminal

    def test_allowed_sources(self):
        assert allowed_sources(ModuleRunStatus.RUNNING) == {ModuleRunStatus.QUEUED}
        assert allowed_sources(ModuleRunStatus.COMPLETED) == {ModuleRunStatus.RUNNING}
        assert allowed_sources(ModuleRunStatus.FAILED) == {ModuleRunStatus.RUNNING}
        assert allowed_sources(ModuleRunStatus.QUEUED) == set()


# =============================================================
# TEST: Status reporting
# =============================================================

class TestReportStatus:

    def test_happy_path_sets_timestamps(self, service, run, clock):
        clock.advance(seconds=5)
        running = service.report_status(run.id, ModuleRunStatus.RUNNING)
        assert running.status == "RUNNING"
        assert running.started_at is not None
        assert running.finished_at is None

        clock.advance(seconds=5)
        done = service.report_status(run.id, ModuleRunStatus.COMPLETED)
        assert done.status == "COMPLETED"
        assert done.finished_at is not None
        assert done.error is None

    def test_failed_records_error(self, service, run):
        service.report_status(run.id, ModuleRunStatus.RUNNING)
        failed = service.report_status(
            run.id,
            ModuleRunStatus.FAILED,
            error={"message": "upstream timeout", "type": "TimeoutError"},
        )

        assert failed.status == "FAILED"
        assert failed.error == {"message": "upstream timeout", "type": "TimeoutError"}
        assert service.get_run(run.id).error["type"] == "TimeoutError"

    def test_queued_to_completed_rejected(self, service, run):
        with pytest.raises(InvalidStatusTransition) as exc_info:
            service.report_status(run.id, ModuleRunStatus.COMPLETED)

        assert exc_info.value.from_status == "QUEUED"
        assert exc_info.value.to_status == "COMPLETED"
        assert service.get_run(run.id).status == "QUEUED"

    def test_completed_to_running_rejected(self, service, run):
        service.report_status(run.id, ModuleRunStatus.RUNNING)
        service.report_status(run.id, ModuleRunStatus.COMPLETED)

        with pytest.raises(InvalidStatusTransition):
            service.report_status(run.id, ModuleRunStatus.RUNNING)

    @pytest.mark.parametrize("terminal", [ModuleRunStatus.COMPLETED, ModuleRunStatus.FAILED])
    def test_terminal_run_is_immutable(self, service, run, terminal):
        service.report_status(run.id, ModuleRunStatus.RUNNING)
        service.report_status(run.id, terminal)

        for target in (ModuleRunStatus.COMPLETED, ModuleRunStatus.FAILED):
            with pytest.raises(InvalidStatusTransition):
                service.report_status(run.id, target)

        assert service.get_run(run.id).status == terminal.value

    def test_running_twice_rejected(self, service, run):
        service.report_status(run.id, ModuleRunStatus.RUNNING)

        with pytest.raises(InvalidStatusTransition):
            service.report_status(run.id, ModuleRunStatus.RUNNING)

    def test_back_to_queued_rejected(self, service, run):
        with pytest.raises(InvalidStatusTransition):
            service.report_status(run.id, ModuleRunStatus.QUEUED)

    def test_unknown_run(self, service):
        with pytest.raises(RunNotFound):
            service.report_status(777, ModuleRunStatus.RUNNING)
