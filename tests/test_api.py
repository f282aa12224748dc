"""
Tests for the HTTP adapter.

Tests cover:
- Module endpoints
- Run creation endpoints and error mapping
- Run read endpoints
"""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api.app import create_app, status_for
from conftest import OUTSIDER_PERSON_ID, PERSON_ID, PROJECT_ID, USER_ID
from core.exceptions import (
    DispatchFailure,
    DuplicateDefinition,
    InvalidStatusTransition,
    ModuleNotFound,
    ScopeMismatch,
)
from module_runner.dispatch import DispatchGateway
from module_runner.service import ModuleRunnerService


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime))


def _register(client, key="x-composer", scope="PERSON_LEVEL", **extra):
    body = {
        "module_key": key,
        "module_type": "COMPOSER",
        "scope": scope,
        "version": "v1",
        "config_schema": {},
        "is_enabled": True,
    }
    body.update(extra)
    return client.post("/modules", json=body)


# =============================================================
# TEST: Error mapping
# =============================================================

class TestStatusMapping:

    def test_mapping(self):
        assert status_for(ModuleNotFound("k")) == 404
        assert status_for(DuplicateDefinition("k", "v1")) == 409
        assert status_for(ScopeMismatch("k", "PROJECT_LEVEL", "no person")) == 400
        assert status_for(DispatchFailure(3)) == 503
        assert status_for(InvalidStatusTransition(1, "QUEUED", "COMPLETED")) == 500


# =============================================================
# TEST: Module endpoints
# =============================================================

class TestModuleEndpoints:

    def test_register(self, client):
        response = _register(client)

        assert response.status_code == 201
        data = response.json()
        assert data["module_key"] == "x-composer"
        assert data["is_enabled"] is True
        assert data["scope"] == "PERSON_LEVEL"

    def test_register_defaults_to_disabled(self, client):
        response = client.post("/modules", json={
            "module_key": "quiet",
            "module_type": "ENRICHER",
            "version": "v1",
        })
        assert response.status_code == 201
        assert response.json()["is_enabled"] is False

    def test_duplicate_is_409(self, client):
        _register(client)
        response = _register(client)

        assert response.status_code == 409
        assert response.json()["type"] == "DuplicateDefinition"

    def test_unknown_field_is_422(self, client):
        response = _register(client, moduleKey="x")
        assert response.status_code == 422

    def test_list_with_filters(self, client):
        _register(client, key="a")
        _register(client, key="b", is_enabled=False)

        response = client.get("/modules", params={"is_enabled": "false"})

        assert response.status_code == 200
        assert [m["module_key"] for m in response.json()["modules"]] == ["b"]

    def test_patch(self, client):
        module_id = _register(client).json()["id"]

        response = client.patch(f"/modules/{module_id}", json={"is_enabled": False})

        assert response.status_code == 200
        assert response.json()["is_enabled"] is False

    def test_patch_unknown_is_404(self, client):
        response = client.patch("/modules/999", json={"is_enabled": False})
        assert response.status_code == 404
        assert response.json()["type"] == "DefinitionNotFound"


# =============================================================
# TEST: Run endpoints
# =============================================================

class TestRunEndpoints:

    def test_create_person_run(self, client):
        _register(client)

        response = client.post(
            f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "x-composer", "input_config": {}},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "QUEUED"
        assert data["module_version"] == "v1"
        assert data["person_id"] == PERSON_ID

        fetched = client.get(f"/module-runs/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == data["id"]

    def test_person_run_on_project_module_is_400(self, client):
        _register(client, key="y-connector", scope="PROJECT_LEVEL")

        response = client.post(
            f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "y-connector"},
        )

        assert response.status_code == 400
        assert response.json()["type"] == "ScopeMismatch"

    def test_person_not_in_project_is_400(self, client):
        _register(client)

        response = client.post(
            f"/projects/{PROJECT_ID}/persons/{OUTSIDER_PERSON_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "x-composer"},
        )

        assert response.status_code == 400
        assert response.json()["type"] == "PersonNotInProject"

    def test_unknown_module_is_404(self, client):
        response = client.post(
            f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "nope"},
        )
        assert response.status_code == 404
        assert response.json()["type"] == "ModuleNotFound"

    def test_project_run_and_listing(self, client):
        _register(client, key="y-connector", scope="PROJECT_LEVEL")

        created = client.post(
            f"/projects/{PROJECT_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "y-connector"},
        )
        assert created.status_code == 201
        assert created.json()["person_id"] is None

        listed = client.get(f"/projects/{PROJECT_ID}/module-runs")
        assert listed.status_code == 200
        assert listed.json()["count"] == 1

    def test_project_listing_includes_person_runs(self, client):
        _register(client)
        _register(client, key="y-connector", scope="PROJECT_LEVEL")
        person_run = client.post(
            f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "x-composer"},
        ).json()
        project_run = client.post(
            f"/projects/{PROJECT_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "y-connector"},
        ).json()

        everything = client.get(f"/projects/{PROJECT_ID}/module-runs").json()
        assert [r["id"] for r in everything["runs"]] == [project_run["id"], person_run["id"]]

        only_project = client.get(
            f"/projects/{PROJECT_ID}/module-runs", params={"project_level_only": "true"}
        ).json()
        assert [r["id"] for r in only_project["runs"]] == [project_run["id"]]

    def test_person_listing_with_limit(self, client):
        _register(client)
        for _ in range(3):
            client.post(
                f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
                json={"triggered_by_user_id": USER_ID, "module_key": "x-composer"},
            )

        response = client.get(
            f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
            params={"limit": 2, "status": "QUEUED"},
        )

        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_limit_above_maximum_is_400(self, client):
        response = client.get(f"/projects/{PROJECT_ID}/module-runs", params={"limit": 500})
        assert response.status_code == 400
        assert response.json()["type"] == "InvalidRunQuery"

    def test_unknown_run_is_404(self, client):
        assert client.get("/module-runs/31337").status_code == 404

    def test_dispatch_failure_is_503_with_run_id(self, runtime):
        queue = MagicMock()
        queue.queue_name = "module-runs"
        queue.publish.side_effect = ConnectionError("broker down")
        broken = replace(
            runtime,
            service=ModuleRunnerService(runtime.database, runtime.clock, DispatchGateway(queue)),
        )
        client = TestClient(create_app(broken))
        _register(client)

        response = client.post(
            f"/projects/{PROJECT_ID}/persons/{PERSON_ID}/module-runs",
            json={"triggered_by_user_id": USER_ID, "module_key": "x-composer"},
        )

        assert response.status_code == 503
        run_id = response.json()["context"]["run_id"]
        assert client.get(f"/module-runs/{run_id}").json()["status"] == "QUEUED"
