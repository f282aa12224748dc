"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the module runner.

- Provides a closed, typed failure taxonomy for every operation
- Names the specific entity that was missing or inconsistent
- Separates caller errors from infrastructure errors
- Includes context for debugging and HTTP mapping

============================================================
EXCEPTION HIERARCHY
============================================================
ModuleRunnerError (base)
├── ConfigurationError
├── NotFoundError
│   ├── ModuleNotFound
│   ├── DefinitionNotFound
│   ├── ProjectNotFound
│   ├── PersonNotFound
│   ├── ActorNotFound
│   └── RunNotFound
├── ConflictError
│   └── DuplicateDefinition
├── ContractViolation
│   ├── ScopeMismatch
│   ├── PersonNotInProject
│   └── InvalidRunQuery
├── DispatchFailure
├── InvalidStatusTransition
├── DatabaseError
└── StartupError
    └── SeedingError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Caller mistake, informational."""

    MEDIUM = "medium"
    """Requires attention but the system is healthy."""

    HIGH = "high"
    """Partial state or infrastructure trouble."""

    CRITICAL = "critical"
    """The process cannot continue."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ModuleRunnerError(Exception):
    """
    Base exception for all module runner errors.

    All exceptions carry:
    - severity: for alerting
    - context: the entity identifiers involved
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def error_code(self) -> str:
        """Stable machine-readable name of the failure."""
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/responses."""
        return {
            "type": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = f"[{self.severity.value.upper()}] {self.error_code}: {self.message}"
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ModuleRunnerError):
    """Error in configuration."""

    default_severity = Severity.CRITICAL

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context=context, **kwargs)


# ============================================================
# NOT FOUND FAMILY
# ============================================================

class NotFoundError(ModuleRunnerError):
    """
    A referenced entity does not exist.

    Always a caller error. Subclasses name the entity so the failure
    is never masked as a generic one.
    """

    default_severity = Severity.LOW
    entity: str = "entity"

    def __init__(self, message: Optional[str] = None, **identifiers: Any):
        context = {k: v for k, v in identifiers.items() if v is not None}
        if message is None:
            ident = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"{self.entity} not found" + (f" ({ident})" if ident else "")
        super().__init__(message, context=context)


class ModuleNotFound(NotFoundError):
    """No enabled module definition matches the requested key/version."""

    entity = "Enabled module"

    def __init__(self, module_key: str, version: Optional[str] = None):
        super().__init__(module_key=module_key, version=version)
        self.module_key = module_key
        self.version = version


class DefinitionNotFound(NotFoundError):
    """No module definition has the given id."""

    entity = "Module definition"

    def __init__(self, module_id: int):
        super().__init__(module_id=module_id)
        self.module_id = module_id


class ProjectNotFound(NotFoundError):
    entity = "Project"

    def __init__(self, project_id: int):
        super().__init__(project_id=project_id)
        self.project_id = project_id


class PersonNotFound(NotFoundError):
    entity = "Person"

    def __init__(self, person_id: Optional[int], message: Optional[str] = None):
        super().__init__(message, person_id=person_id)
        self.person_id = person_id


class ActorNotFound(NotFoundError):
    entity = "Triggering user"

    def __init__(self, user_id: int):
        super().__init__(user_id=user_id)
        self.user_id = user_id


class RunNotFound(NotFoundError):
    entity = "Module run"

    def __init__(self, run_id: int):
        super().__init__(run_id=run_id)
        self.run_id = run_id


# ============================================================
# CONFLICT ERRORS
# ============================================================

class ConflictError(ModuleRunnerError):
    """The write would violate a uniqueness rule."""

    default_severity = Severity.LOW


class DuplicateDefinition(ConflictError):
    """A definition with the same (module_key, version) already exists."""

    def __init__(self, module_key: str, version: str):
        super().__init__(
            f"Module {module_key}@{version} is already registered",
            context={"module_key": module_key, "version": version},
        )
        self.module_key = module_key
        self.version = version


# ============================================================
# CONTRACT VIOLATIONS
# ============================================================

class ContractViolation(ModuleRunnerError):
    """Caller supplied an inconsistent request. Rejected before any write."""

    default_severity = Severity.LOW


class ScopeMismatch(ContractViolation):
    """The request's person/project shape does not fit the module's scope."""

    def __init__(
        self,
        module_key: str,
        module_scope: str,
        reason: str,
        person_id: Optional[int] = None,
    ):
        super().__init__(
            f"Module {module_key} has scope {module_scope}: {reason}",
            context={
                "module_key": module_key,
                "module_scope": module_scope,
                "person_id": person_id,
            },
        )
        self.module_key = module_key
        self.module_scope = module_scope


class PersonNotInProject(ContractViolation):
    """The person exists but is not attached to the project."""

    def __init__(self, project_id: int, person_id: int):
        super().__init__(
            f"Person {person_id} is not associated with project {project_id}",
            context={"project_id": project_id, "person_id": person_id},
        )
        self.project_id = project_id
        self.person_id = person_id


class InvalidRunQuery(ContractViolation):
    """A run listing request is out of bounds."""

    def __init__(self, field: str, reason: str, value: Any = None):
        super().__init__(
            f"Invalid run query for {field}: {reason}",
            context={"field": field, "value": value},
        )
        self.field = field


# ============================================================
# DISPATCH ERRORS
# ============================================================

class DispatchFailure(ModuleRunnerError):
    """
    The run was committed but its job could not be published.

    The run now exists in QUEUED state with no job behind it and
    needs reconciliation, so this is reported distinctly from any
    validation failure.
    """

    default_severity = Severity.HIGH

    def __init__(self, run_id: int, cause: Optional[Exception] = None):
        super().__init__(
            f"Module run {run_id} was created but could not be enqueued",
            context={"run_id": run_id},
            cause=cause,
        )
        self.run_id = run_id


# ============================================================
# STATE MACHINE ERRORS
# ============================================================

class InvalidStatusTransition(ModuleRunnerError):
    """A status report would break the run state machine."""

    default_severity = Severity.MEDIUM

    def __init__(self, run_id: int, from_status: str, to_status: str):
        super().__init__(
            f"Invalid status transition for run {run_id}: {from_status} -> {to_status}",
            context={
                "run_id": run_id,
                "from_status": from_status,
                "to_status": to_status,
            },
        )
        self.run_id = run_id
        self.from_status = from_status
        self.to_status = to_status


# ============================================================
# INFRASTRUCTURE ERRORS
# ============================================================

class DatabaseError(ModuleRunnerError):
    """Database connection or initialization failure."""

    default_severity = Severity.HIGH


class StartupError(ModuleRunnerError):
    """The process could not start."""

    default_severity = Severity.CRITICAL


class SeedingError(StartupError):
    """Bootstrap seeding aborted."""

    def __init__(self, module_key: str, version: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Seeding aborted at module {module_key}@{version}",
            context={"module_key": module_key, "version": version},
            cause=cause,
        )
        self.module_key = module_key
        self.version = version
