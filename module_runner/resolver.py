"""
Module Runner - Version Resolver.

Maps a module key and optional explicit version to the concrete
enabled definition a run will be bound to.
"""

import logging
from typing import Optional

from .registry import ModuleRegistry
from core.exceptions import ModuleNotFound
from storage.models.modules import ModuleDefinition


logger = logging.getLogger(__name__)


class VersionResolver:
    """Resolves "latest enabled version" or checks an explicit one."""

    def __init__(self, registry: ModuleRegistry):
        self._registry = registry

    def resolve(self, module_key: str, version: Optional[str] = None) -> ModuleDefinition:
        """
        Resolve to an enabled definition.

        With an explicit version the definition must exist and be enabled.
        Without one the most recently created enabled definition wins,
        the highest id breaking a created_at tie.

        Raises:
            ModuleNotFound: If nothing enabled matches
        """
        if version is not None:
            definition = self._registry.find(module_key, version, enabled_only=True)
            if definition is None:
                raise ModuleNotFound(module_key, version)
            return definition

        candidates = self._registry.list_enabled_versions(module_key)
        if not candidates:
            raise ModuleNotFound(module_key)

        definition = candidates[0]
        logger.debug(f"Resolved latest version [module={module_key}] [version={definition.version}]")
        return definition
