"""
Module Runner - Module Registry.

============================================================
RESPONSIBILITY
============================================================
Owns the catalog of module definitions.

- Register versioned definitions, one row per (module_key, version)
- List definitions with closed filters
- Enable/disable and config-schema updates
- Enabled-version lookups for resolution and seeding

Definitions are never deleted. A disabled definition stays in
the catalog so runs bound to it keep their meaning.

============================================================
"""

import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from .models import ModuleFilters, ModuleRegistration, ModuleUpdate
from core.clock import ClockProtocol
from core.exceptions import DefinitionNotFound, DuplicateDefinition
from storage.models.modules import ModuleDefinition
from storage.repositories import DuplicateRecordError, ModuleDefinitionRepository


logger = logging.getLogger(__name__)


class ModuleRegistry:
    """
    Session-bound view of the module catalog.

    Writes are flushed, never committed: the owner of the session
    decides the transaction boundary.
    """

    def __init__(self, session: Session, clock: ClockProtocol):
        self._repo = ModuleDefinitionRepository(session)
        self._clock = clock

    # =========================================================
    # REGISTRATION
    # =========================================================

    def register(self, registration: ModuleRegistration) -> ModuleDefinition:
        """
        Register a new module definition.

        Raises:
            DuplicateDefinition: If (module_key, version) already exists
        """
        key, version = registration.module_key, registration.version

        if self._repo.find_by_key_version(key, version) is not None:
            logger.warning(f"Duplicate module registration rejected [module={key}@{version}]")
            raise DuplicateDefinition(key, version)

        try:
            definition = self._repo.create_definition(
                module_key=key,
                module_type=registration.module_type.value,
                scope=registration.scope.value,
                version=version,
                config_schema=registration.config_schema,
                is_enabled=registration.is_enabled,
                created_at=self._clock.now(),
            )
        except DuplicateRecordError as e:
            # Concurrent registration won the unique constraint
            logger.warning(f"Duplicate module registration rejected [module={key}@{version}]")
            raise DuplicateDefinition(key, version) from e

        logger.info(
            f"Module registered [module={key}@{version}] "
            f"[type={definition.module_type}] [scope={definition.scope}] "
            f"[enabled={definition.is_enabled}]"
        )
        return definition

    # =========================================================
    # QUERIES
    # =========================================================

    def list(self, filters: Optional[ModuleFilters] = None) -> List[ModuleDefinition]:
        filters = filters or ModuleFilters()
        return self._repo.list_definitions(
            module_key=filters.module_key,
            module_type=filters.module_type.value if filters.module_type else None,
            is_enabled=filters.is_enabled,
        )

    def get(self, module_id: int) -> ModuleDefinition:
        definition = self._repo.get_definition(module_id)
        if definition is None:
            raise DefinitionNotFound(module_id)
        return definition

    def find(
        self,
        module_key: str,
        version: str,
        enabled_only: bool = False,
    ) -> Optional[ModuleDefinition]:
        return self._repo.find_by_key_version(module_key, version, enabled_only=enabled_only)

    def list_enabled_versions(self, module_key: str) -> List[ModuleDefinition]:
        """Enabled definitions of a key, newest first (id breaks ties)."""
        return self._repo.list_enabled_for_key(module_key)

    # =========================================================
    # LIFECYCLE
    # =========================================================

    def update(self, module_id: int, update: ModuleUpdate) -> ModuleDefinition:
        """
        Apply a partial update.

        Only fields the caller explicitly set are written, so
        `config_schema=None` clears the schema while an omitted
        `config_schema` leaves it untouched.

        Raises:
            DefinitionNotFound: If no definition has this id
        """
        definition = self.get(module_id)

        changes = {}
        fields_set = update.model_fields_set
        if "is_enabled" in fields_set and update.is_enabled is not None:
            changes["is_enabled"] = update.is_enabled
        if "config_schema" in fields_set:
            changes["config_schema"] = update.config_schema

        if not changes:
            return definition

        definition = self._repo.update_definition(
            definition, updated_at=self._clock.now(), **changes
        )
        logger.info(
            f"Module updated [id={module_id}] "
            f"[module={definition.module_key}@{definition.version}] "
            f"[fields={','.join(sorted(changes))}]"
        )
        return definition

    def set_enabled(self, module_id: int, is_enabled: bool) -> ModuleDefinition:
        return self.update(module_id, ModuleUpdate(is_enabled=is_enabled))

    def update_config_schema(self, module_id: int, config_schema: Any) -> ModuleDefinition:
        return self.update(module_id, ModuleUpdate(config_schema=config_schema))
