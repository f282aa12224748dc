"""
FastAPI Router for Module Runner Endpoints.

Provides REST API over ModuleRunnerService:
- Register, list and update module definitions
- Create person-level and project-level runs
- Read and list runs

Domain errors are translated to HTTP responses by the handlers
installed in api.app.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from api.schemas import (
    ErrorResponse,
    ModuleCreate,
    ModuleDefinitionResponse,
    ModuleListResponse,
    ModulePatch,
    ModuleRunResponse,
    RunCreate,
    RunListResponse,
)
from core.constants import ModuleRunStatus, ModuleType
from module_runner.models import ModuleFilters, RunListFilters
from module_runner.service import ModuleRunnerService

router = APIRouter(
    tags=["Module Runner"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


# =============================================================
# HELPER: Get service instance
# =============================================================

def get_service(request: Request) -> ModuleRunnerService:
    return request.app.state.runtime.service


# =============================================================
# MODULE ENDPOINTS
# =============================================================

@router.post("/modules", response_model=ModuleDefinitionResponse, status_code=status.HTTP_201_CREATED)
def register_module(
    body: ModuleCreate,
    service: ModuleRunnerService = Depends(get_service),
):
    """Register a new module version. Disabled unless is_enabled is given."""
    definition = service.register_module(body)
    return ModuleDefinitionResponse.model_validate(definition)


@router.get("/modules", response_model=ModuleListResponse)
def list_modules(
    module_key: Optional[str] = Query(None),
    module_type: Optional[ModuleType] = Query(None),
    is_enabled: Optional[bool] = Query(None),
    service: ModuleRunnerService = Depends(get_service),
):
    filters = ModuleFilters(module_key=module_key, module_type=module_type, is_enabled=is_enabled)
    definitions = service.list_modules(filters)
    return ModuleListResponse(
        modules=[ModuleDefinitionResponse.model_validate(d) for d in definitions],
        count=len(definitions),
    )


@router.patch("/modules/{module_id}", response_model=ModuleDefinitionResponse)
def update_module(
    module_id: int,
    body: ModulePatch,
    service: ModuleRunnerService = Depends(get_service),
):
    """Enable/disable a module or replace its config schema."""
    definition = service.update_module(module_id, body)
    return ModuleDefinitionResponse.model_validate(definition)


# =============================================================
# RUN CREATION ENDPOINTS
# =============================================================

@router.post(
    "/projects/{project_id}/persons/{person_id}/module-runs",
    response_model=ModuleRunResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_person_run(
    project_id: int,
    person_id: int,
    body: RunCreate,
    service: ModuleRunnerService = Depends(get_service),
):
    run = service.create_person_run(
        project_id=project_id,
        person_id=person_id,
        triggered_by_user_id=body.triggered_by_user_id,
        module_key=body.module_key,
        version=body.version,
        input_config=body.input_config,
    )
    return ModuleRunResponse.model_validate(run)


@router.post(
    "/projects/{project_id}/module-runs",
    response_model=ModuleRunResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_project_run(
    project_id: int,
    body: RunCreate,
    service: ModuleRunnerService = Depends(get_service),
):
    run = service.create_project_run(
        project_id=project_id,
        triggered_by_user_id=body.triggered_by_user_id,
        module_key=body.module_key,
        version=body.version,
        input_config=body.input_config,
    )
    return ModuleRunResponse.model_validate(run)


# =============================================================
# RUN READ ENDPOINTS
# =============================================================

@router.get("/module-runs/{run_id}", response_model=ModuleRunResponse)
def get_run(
    run_id: int,
    service: ModuleRunnerService = Depends(get_service),
):
    return ModuleRunResponse.model_validate(service.get_run(run_id))


@router.get("/projects/{project_id}/module-runs", response_model=RunListResponse)
def list_project_runs(
    project_id: int,
    status_filter: Optional[ModuleRunStatus] = Query(None, alias="status"),
    module_key: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    project_level_only: bool = Query(False),
    service: ModuleRunnerService = Depends(get_service),
):
    """All runs of a project, newest first. project_level_only drops person runs."""
    filters = RunListFilters(
        status=status_filter,
        module_key=module_key,
        limit=limit,
        project_level_only=project_level_only,
    )
    runs = service.list_runs(project_id, None, filters)
    return RunListResponse(
        runs=[ModuleRunResponse.model_validate(r) for r in runs],
        count=len(runs),
    )


@router.get("/projects/{project_id}/persons/{person_id}/module-runs", response_model=RunListResponse)
def list_person_runs(
    project_id: int,
    person_id: int,
    status_filter: Optional[ModuleRunStatus] = Query(None, alias="status"),
    module_key: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    service: ModuleRunnerService = Depends(get_service),
):
    """Runs of one person within a project, newest first."""
    filters = RunListFilters(status=status_filter, module_key=module_key, limit=limit)
    runs = service.list_runs(project_id, person_id, filters)
    return RunListResponse(
        runs=[ModuleRunResponse.model_validate(r) for r in runs],
        count=len(runs),
    )
