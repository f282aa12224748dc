"""
Pydantic Schemas for the Module Runner HTTP API.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.clock import ensure_utc
from core.constants import (
    MODULE_KEY_MAX_LENGTH,
    MODULE_VERSION_MAX_LENGTH,
    ModuleRunStatus,
    ModuleScope,
    ModuleType,
)
from module_runner.models import ClosedModel, ModuleRegistration, ModuleUpdate


# =============================================================
# REQUEST BODIES
# =============================================================

class ModuleCreate(ModuleRegistration):
    pass


class ModulePatch(ModuleUpdate):
    pass


class RunCreate(ClosedModel):
    """Body of both run creation endpoints. Scope comes from the path."""

    triggered_by_user_id: int
    module_key: str = Field(..., min_length=1, max_length=MODULE_KEY_MAX_LENGTH)
    version: Optional[str] = Field(default=None, max_length=MODULE_VERSION_MAX_LENGTH)
    input_config: Optional[Any] = None


# =============================================================
# RESPONSES
# =============================================================

class _OrmResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ModuleDefinitionResponse(_OrmResponse):
    id: int
    module_key: str
    module_type: ModuleType
    scope: ModuleScope
    version: str
    config_schema: Optional[Any] = None
    is_enabled: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ModuleRunResponse(_OrmResponse):
    id: int
    project_id: int
    person_id: Optional[int] = None
    triggered_by_user_id: int
    module_key: str
    module_version: str
    status: ModuleRunStatus
    input_config: Optional[Any] = None
    error: Optional[Any] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "started_at", "finished_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class ModuleListResponse(BaseModel):
    modules: List[ModuleDefinitionResponse]
    count: int


class RunListResponse(BaseModel):
    runs: List[ModuleRunResponse]
    count: int


class ErrorResponse(BaseModel):
    type: str
    message: str
    severity: str
    context: dict
    timestamp: str
