"""
Module Definition Repository.

============================================================
PURPOSE
============================================================
Persistence for the module registry catalog.

============================================================
QUERIES
============================================================
- find_by_key_version: identity lookup, optionally enabled-only
- list_definitions: AND-combined optional filters
- list_enabled_for_key: newest first, id as tie-break

============================================================
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.modules import ModuleDefinition
from storage.repositories.base import BaseRepository


class ModuleDefinitionRepository(BaseRepository[ModuleDefinition]):
    """Repository for module definitions."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ModuleDefinition, "ModuleDefinitionRepository")

    def create_definition(
        self,
        module_key: str,
        module_type: str,
        scope: str,
        version: str,
        config_schema: Optional[Any],
        is_enabled: bool,
        created_at: datetime,
    ) -> ModuleDefinition:
        """Insert a definition. Unique violations surface as DuplicateRecordError."""
        entity = ModuleDefinition(
            module_key=module_key,
            module_type=module_type,
            scope=scope,
            version=version,
            config_schema=config_schema,
            is_enabled=is_enabled,
            created_at=created_at,
            updated_at=created_at,
        )
        return self._add(entity)

    def get_definition(self, module_id: int) -> Optional[ModuleDefinition]:
        return self._get_by_id(module_id)

    def find_by_key_version(
        self,
        module_key: str,
        version: str,
        enabled_only: bool = False,
    ) -> Optional[ModuleDefinition]:
        stmt = select(ModuleDefinition).where(
            ModuleDefinition.module_key == module_key,
            ModuleDefinition.version == version,
        )
        if enabled_only:
            stmt = stmt.where(ModuleDefinition.is_enabled.is_(True))
        return self._execute_scalar(stmt)

    def list_definitions(
        self,
        module_key: Optional[str] = None,
        module_type: Optional[str] = None,
        is_enabled: Optional[bool] = None,
    ) -> List[ModuleDefinition]:
        """
        List definitions matching every given filter.

        A filter left as None places no constraint on its column.
        """
        stmt = select(ModuleDefinition)
        if module_key is not None:
            stmt = stmt.where(ModuleDefinition.module_key == module_key)
        if module_type is not None:
            stmt = stmt.where(ModuleDefinition.module_type == module_type)
        if is_enabled is not None:
            stmt = stmt.where(ModuleDefinition.is_enabled.is_(is_enabled))
        stmt = stmt.order_by(ModuleDefinition.module_key, ModuleDefinition.id)
        return self._execute_query(stmt)

    def list_enabled_for_key(self, module_key: str) -> List[ModuleDefinition]:
        """Enabled definitions of a key, most recently created first."""
        stmt = (
            select(ModuleDefinition)
            .where(
                ModuleDefinition.module_key == module_key,
                ModuleDefinition.is_enabled.is_(True),
            )
            .order_by(ModuleDefinition.created_at.desc(), ModuleDefinition.id.desc())
        )
        return self._execute_query(stmt)

    def update_definition(
        self,
        definition: ModuleDefinition,
        updated_at: datetime,
        **changes: Any,
    ) -> ModuleDefinition:
        """Apply column changes to a loaded definition and flush."""
        for column, value in changes.items():
            setattr(definition, column, value)
        definition.updated_at = updated_at
        return self._add(definition)
