"""
Shared fixtures for module runner tests.

Every test gets a fresh in-memory SQLite database with a small
directory:

    project 1  <- person 7 (member)
    project 2
    person 8   (not a member of any project)
    user 2
"""

from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from core.clock import MockClock
from core.config import RunnerConfig
from module_runner.bootstrap import build_runtime
from module_runner.dispatch import DatabaseJobQueue, DispatchGateway
from module_runner.models import ModuleRegistration
from module_runner.service import ModuleRunnerService
from storage.database import Database
from storage.models import Person, PersonProject, Project, User


PROJECT_ID = 1
OTHER_PROJECT_ID = 2
PERSON_ID = 7
OUTSIDER_PERSON_ID = 8
USER_ID = 2


# ============================================================
# INFRASTRUCTURE
# ============================================================

@pytest.fixture
def clock():
    """Deterministic clock starting at 2025-01-01 00:00 UTC."""
    return MockClock(datetime(2025, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def database():
    """In-memory database with tables and directory rows."""
    db = Database("sqlite://")
    db.create_all()

    with db.session_scope() as session:
        session.add_all([
            Project(id=PROJECT_ID, name="Acme outreach"),
            Project(id=OTHER_PROJECT_ID, name="Globex outreach"),
            Person(id=PERSON_ID, full_name="Dana Reyes"),
            Person(id=OUTSIDER_PERSON_ID, full_name="Sam Ortiz"),
            User(id=USER_ID, email="operator@example.com"),
        ])
        session.flush()
        session.add(PersonProject(project_id=PROJECT_ID, person_id=PERSON_ID))

    yield db
    db.dispose()


@pytest.fixture
def queue(database, clock):
    return DatabaseJobQueue(database, clock)


@pytest.fixture
def gateway(queue):
    return DispatchGateway(queue)


@pytest.fixture
def service(database, clock, gateway):
    return ModuleRunnerService(database, clock, gateway)


@pytest.fixture
def config():
    return RunnerConfig(database_url="sqlite://", auto_seed=False)


@pytest.fixture
def runtime(config, clock, database):
    return build_runtime(config, clock=clock, database=database)


# ============================================================
# HELPERS
# ============================================================

@pytest.fixture
def register(service):
    """Register a module through the service."""

    def _register(
        module_key: str,
        module_type: str = "COMPOSER",
        scope: str = "PERSON_LEVEL",
        version: str = "v1",
        config_schema: Optional[Any] = None,
        is_enabled: bool = True,
    ):
        return service.register_module(ModuleRegistration(
            module_key=module_key,
            module_type=module_type,
            scope=scope,
            version=version,
            config_schema=config_schema if config_schema is not None else {},
            is_enabled=is_enabled,
        ))

    return _register


@pytest.fixture
def person_run(service):
    """Create a person-level run in project 1 for person 7."""

    def _create(module_key: str, version: Optional[str] = None, input_config: Any = None):
        return service.create_person_run(
            project_id=PROJECT_ID,
            person_id=PERSON_ID,
            triggered_by_user_id=USER_ID,
            module_key=module_key,
            version=version,
            input_config=input_config if input_config is not None else {},
        )

    return _create
