"""
Module Runner - Models.

============================================================
RESPONSIBILITY
============================================================
Defines the typed inputs accepted at the caller boundary.

- Module registration and partial update
- Closed module listing filters
- Run creation requests
- Closed run listing filters

Every model forbids unknown fields, so a misspelled filter is
rejected instead of being silently ignored.

============================================================
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.constants import (
    MODULE_KEY_MAX_LENGTH,
    MODULE_VERSION_MAX_LENGTH,
    ModuleRunStatus,
    ModuleScope,
    ModuleType,
)


class ClosedModel(BaseModel):
    """Base for boundary models: unknown fields are an error."""

    model_config = ConfigDict(extra="forbid")


# ============================================================
# MODULE REGISTRY INPUTS
# ============================================================

class ModuleRegistration(ClosedModel):
    """A new module definition."""

    module_key: str = Field(..., min_length=1, max_length=MODULE_KEY_MAX_LENGTH)
    module_type: ModuleType
    scope: ModuleScope = ModuleScope.PERSON_LEVEL
    version: str = Field(..., min_length=1, max_length=MODULE_VERSION_MAX_LENGTH)
    config_schema: Optional[Any] = None
    is_enabled: bool = False


class ModuleFilters(ClosedModel):
    """AND-combined listing filters. None means unconstrained."""

    module_key: Optional[str] = None
    module_type: Optional[ModuleType] = None
    is_enabled: Optional[bool] = None


class ModuleUpdate(ClosedModel):
    """Partial update of a definition. Only fields explicitly set are applied."""

    is_enabled: Optional[bool] = None
    config_schema: Optional[Any] = None


# ============================================================
# RUN INPUTS
# ============================================================

class RunRequest(ClosedModel):
    """Everything needed to create one module run."""

    project_id: int
    person_id: Optional[int] = None
    triggered_by_user_id: int
    module_key: str = Field(..., min_length=1, max_length=MODULE_KEY_MAX_LENGTH)
    version: Optional[str] = Field(default=None, max_length=MODULE_VERSION_MAX_LENGTH)
    input_config: Optional[Any] = None


class RunListFilters(ClosedModel):
    """
    Run listing filters.

    The limit is range-checked by the ledger against the configured
    maximum, not here, so the bound follows configuration.
    """

    status: Optional[ModuleRunStatus] = None
    module_key: Optional[str] = None
    limit: Optional[int] = None
    project_level_only: bool = False


__all__ = [
    "ClosedModel",
    "ModuleRegistration",
    "ModuleFilters",
    "ModuleUpdate",
    "RunRequest",
    "RunListFilters",
]
