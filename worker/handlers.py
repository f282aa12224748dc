"""
Worker - Module Handlers.

============================================================
RESPONSIBILITY
============================================================
Maps module keys to the code that executes them.

- ModuleHandler protocol every concrete module implements
- HandlerRegistry: key -> handler lookup
- NoopModuleHandler: the built-in test module

Concrete connectors, enrichers and composers live outside this
package and are registered at worker start.

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from core.constants import ModuleKeys
from storage.models.runs import ModuleRun


logger = logging.getLogger(__name__)


# ============================================================
# HANDLER CONTRACT
# ============================================================

@dataclass(frozen=True)
class RunContext:
    """Detached snapshot of the run a handler executes."""

    run_id: int
    project_id: int
    person_id: Optional[int]
    triggered_by_user_id: int
    module_key: str
    module_version: str
    input_config: Optional[Any]

    @classmethod
    def from_run(cls, run: ModuleRun) -> "RunContext":
        return cls(
            run_id=run.id,
            project_id=run.project_id,
            person_id=run.person_id,
            triggered_by_user_id=run.triggered_by_user_id,
            module_key=run.module_key,
            module_version=run.module_version,
            input_config=run.input_config,
        )


class ModuleHandler(Protocol):
    """Protocol that all module handlers implement."""

    def execute(self, context: RunContext) -> Dict[str, Any]:
        """Run the module. Raise to fail the run."""
        ...


class UnknownModuleHandler(LookupError):
    """No handler is registered for a module key."""

    def __init__(self, module_key: str):
        super().__init__(f"No handler registered for module key: {module_key}")
        self.module_key = module_key


# ============================================================
# HANDLER REGISTRY
# ============================================================

class HandlerRegistry:
    """Module key -> handler."""

    def __init__(self):
        self._handlers: Dict[str, ModuleHandler] = {}

    def register(self, module_key: str, handler: ModuleHandler) -> None:
        if module_key in self._handlers:
            raise ValueError(f"Handler already registered for module key: {module_key}")
        self._handlers[module_key] = handler
        logger.debug(f"Registered handler [module={module_key}] [handler={type(handler).__name__}]")

    def get(self, module_key: str) -> ModuleHandler:
        try:
            return self._handlers[module_key]
        except KeyError:
            raise UnknownModuleHandler(module_key) from None

    def keys(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, module_key: str) -> bool:
        return module_key in self._handlers


# ============================================================
# BUILT-IN HANDLERS
# ============================================================

class NoopModuleHandler:
    """Does nothing, logs and succeeds."""

    def execute(self, context: RunContext) -> Dict[str, Any]:
        logger.info(
            f"Noop module executed [run={context.run_id}] "
            f"[input_config={context.input_config}]"
        )
        return {"success": True}


def create_default_handlers() -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(ModuleKeys.NOOP_MODULE, NoopModuleHandler())
    return registry
