"""
Tests for run creation and run queries.

Tests cover:
- Person-level and project-level run creation
- Scope and referential validation order
- Version freezing
- Listing order, filters and limit bounds
"""

import pytest

from conftest import OTHER_PROJECT_ID, OUTSIDER_PERSON_ID, PERSON_ID, PROJECT_ID, USER_ID
from core.constants import ModuleRunStatus
from core.exceptions import (
    ActorNotFound,
    InvalidRunQuery,
    ModuleNotFound,
    PersonNotFound,
    PersonNotInProject,
    ProjectNotFound,
    RunNotFound,
    ScopeMismatch,
)
from module_runner.models import ModuleUpdate, RunListFilters, RunRequest
from storage.models import ModuleRun


def _count_runs(database) -> int:
    with database.session_scope() as session:
        return session.query(ModuleRun).count()


# =============================================================
# TEST: Person-level runs
# =============================================================

class TestCreatePersonRun:
    """Test create_person_run."""

    def test_latest_version_bound_and_queued(self, register, person_run):
        register("x-composer", module_type="COMPOSER", scope="PERSON_LEVEL", version="v1")

        run = person_run("x-composer")

        assert run.id is not None
        assert run.module_version == "v1"
        assert run.status == ModuleRunStatus.QUEUED.value
        assert run.person_id == PERSON_ID
        assert run.project_id == PROJECT_ID
        assert run.triggered_by_user_id == USER_ID
        assert run.started_at is None
        assert run.finished_at is None

    def test_input_config_persisted(self, register, person_run, service):
        register("x-composer")
        run = person_run("x-composer", input_config={"postsLimit": 20})

        assert service.get_run(run.id).input_config == {"postsLimit": 20}

    def test_no_enabled_definition(self, register, person_run):
        register("x-composer", is_enabled=False)

        with pytest.raises(ModuleNotFound):
            person_run("x-composer")

    def test_project_level_module_rejected(self, register, person_run):
        register("y-connector", module_type="CONNECTOR", scope="PROJECT_LEVEL")

        with pytest.raises(ScopeMismatch):
            person_run("y-connector")

    def test_project_level_module_rejected_for_unknown_person(self, register, service, database):
        """Scope is checked before the person is looked up."""
        register("y-connector", module_type="CONNECTOR", scope="PROJECT_LEVEL")

        with pytest.raises(ScopeMismatch):
            service.create_person_run(
                project_id=PROJECT_ID,
                person_id=424242,
                triggered_by_user_id=USER_ID,
                module_key="y-connector",
            )
        assert _count_runs(database) == 0

    def test_unknown_person(self, register, service):
        register("x-composer")

        with pytest.raises(PersonNotFound) as exc_info:
            service.create_person_run(PROJECT_ID, 424242, USER_ID, "x-composer")
        assert exc_info.value.person_id == 424242

    def test_missing_person(self, register, service):
        register("x-composer")

        with pytest.raises(PersonNotFound):
            service.create_person_run(PROJECT_ID, None, USER_ID, "x-composer")

    def test_person_outside_project(self, register, service):
        register("x-composer")

        with pytest.raises(PersonNotInProject):
            service.create_person_run(PROJECT_ID, OUTSIDER_PERSON_ID, USER_ID, "x-composer")

    def test_unknown_project(self, register, service):
        register("x-composer")

        with pytest.raises(ProjectNotFound):
            service.create_person_run(99, PERSON_ID, USER_ID, "x-composer")

    def test_unknown_actor(self, register, service, database):
        register("x-composer")

        with pytest.raises(ActorNotFound):
            service.create_person_run(PROJECT_ID, PERSON_ID, 555, "x-composer")
        assert _count_runs(database) == 0


# =============================================================
# TEST: Project-level runs
# =============================================================

class TestCreateProjectRun:
    """Test create_project_run."""

    def test_project_run_has_no_person(self, register, service):
        register("prospect-search-connector", module_type="CONNECTOR", scope="PROJECT_LEVEL")

        run = service.create_project_run(
            project_id=OTHER_PROJECT_ID,
            triggered_by_user_id=USER_ID,
            module_key="prospect-search-connector",
            input_config={"query": "cto fintech"},
        )

        assert run.person_id is None
        assert run.project_id == OTHER_PROJECT_ID
        assert run.status == ModuleRunStatus.QUEUED.value

    def test_person_level_module_rejected(self, register, service):
        register("x-composer", scope="PERSON_LEVEL")

        with pytest.raises(ScopeMismatch):
            service.create_project_run(PROJECT_ID, USER_ID, "x-composer")

    def test_generic_create_rejects_person_on_project_module(self, register, service):
        register("y-connector", module_type="CONNECTOR", scope="PROJECT_LEVEL")

        with pytest.raises(ScopeMismatch):
            service.create_run(RunRequest(
                project_id=PROJECT_ID,
                person_id=PERSON_ID,
                triggered_by_user_id=USER_ID,
                module_key="y-connector",
            ))


# =============================================================
# TEST: Frozen version
# =============================================================

class TestFrozenVersion:
    """A run keeps the version it was created with."""

    def test_disabling_definition_keeps_run_version(self, register, person_run, service, clock):
        first = register("x-composer", version="v1")
        run = person_run("x-composer")

        clock.advance(seconds=10)
        register("x-composer", version="v2")
        service.update_module(first.id, ModuleUpdate(is_enabled=False))

        assert service.get_run(run.id).module_version == "v1"
        assert person_run("x-composer").module_version == "v2"

    def test_explicit_version(self, register, person_run, clock):
        register("x-composer", version="v1")
        clock.advance(seconds=1)
        register("x-composer", version="v2")

        assert person_run("x-composer", version="v1").module_version == "v1"

    def test_get_unknown_run(self, service):
        with pytest.raises(RunNotFound):
            service.get_run(12345)


# =============================================================
# TEST: Listing
# =============================================================

class TestListRuns:
    """Test run listing."""

    def test_new_run_is_listed(self, register, person_run, service):
        register("x-composer")
        run = person_run("x-composer")

        runs = service.list_runs(PROJECT_ID, PERSON_ID)
        assert [r.id for r in runs] == [run.id]
        assert runs[0].status == ModuleRunStatus.QUEUED.value

    def test_limit_newest_first(self, register, person_run, service, clock):
        register("x-composer")
        created = []
        for _ in range(8):
            created.append(person_run("x-composer").id)
            clock.advance(seconds=1)

        runs = service.list_runs(PROJECT_ID, PERSON_ID, RunListFilters(limit=5))

        assert [r.id for r in runs] == list(reversed(created))[:5]

    def test_same_timestamp_newest_id_first(self, register, person_run, service):
        register("x-composer")
        ids = [person_run("x-composer").id for _ in range(3)]

        runs = service.list_runs(PROJECT_ID, PERSON_ID)
        assert [r.id for r in runs] == sorted(ids, reverse=True)

    def test_default_limit(self, register, person_run, service):
        register("x-composer")
        for _ in range(22):
            person_run("x-composer")

        assert len(service.list_runs(PROJECT_ID, PERSON_ID)) == 20

    def test_limit_above_maximum_rejected(self, service):
        with pytest.raises(InvalidRunQuery) as exc_info:
            service.list_runs(PROJECT_ID, PERSON_ID, RunListFilters(limit=101))
        assert exc_info.value.field == "limit"

    def test_limit_below_one_rejected(self, service):
        with pytest.raises(InvalidRunQuery):
            service.list_runs(PROJECT_ID, PERSON_ID, RunListFilters(limit=0))

    def test_without_person_lists_every_project_run(self, register, person_run, service):
        register("x-composer")
        register("y-connector", module_type="CONNECTOR", scope="PROJECT_LEVEL")
        created = person_run("x-composer")
        project_run = service.create_project_run(PROJECT_ID, USER_ID, "y-connector")

        runs = service.list_runs(PROJECT_ID)
        assert [r.id for r in runs] == [project_run.id, created.id]

    def test_run_listed_at_project_scope_right_after_creation(self, register, person_run, service):
        register("x-composer")
        created = person_run("x-composer")

        assert created.id in [r.id for r in service.list_runs(PROJECT_ID)]

    def test_project_level_only_filter(self, register, person_run, service):
        register("x-composer")
        register("y-connector", module_type="CONNECTOR", scope="PROJECT_LEVEL")
        person_run("x-composer")
        project_run = service.create_project_run(PROJECT_ID, USER_ID, "y-connector")

        runs = service.list_runs(PROJECT_ID, filters=RunListFilters(project_level_only=True))
        assert [r.id for r in runs] == [project_run.id]

    def test_project_level_only_with_person_rejected(self, service):
        with pytest.raises(InvalidRunQuery) as exc_info:
            service.list_runs(
                PROJECT_ID, PERSON_ID, RunListFilters(project_level_only=True)
            )
        assert exc_info.value.field == "project_level_only"

    def test_filter_by_module_key_and_status(self, register, person_run, service):
        register("x-composer")
        register("z-enricher", module_type="ENRICHER")
        person_run("x-composer")
        enricher_run = person_run("z-enricher")
        service.report_status(enricher_run.id, ModuleRunStatus.RUNNING)

        by_key = service.list_runs(PROJECT_ID, PERSON_ID, RunListFilters(module_key="z-enricher"))
        assert [r.id for r in by_key] == [enricher_run.id]

        queued = service.list_runs(
            PROJECT_ID, PERSON_ID, RunListFilters(status=ModuleRunStatus.QUEUED)
        )
        assert [r.module_key for r in queued] == ["x-composer"]

    def test_other_person_not_listed(self, register, person_run, service):
        register("x-composer")
        person_run("x-composer")

        assert service.list_runs(PROJECT_ID, OUTSIDER_PERSON_ID) == []
