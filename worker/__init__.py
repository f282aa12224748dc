"""
Worker Package.

Executes dequeued module runs and reports their status.

- handlers: module key -> handler
- consumer: ModuleRunConsumer and the database QueueWorker
- tasks: Celery task binding
"""

from .handlers import (
    HandlerRegistry,
    ModuleHandler,
    NoopModuleHandler,
    RunContext,
    UnknownModuleHandler,
    create_default_handlers,
)
from .consumer import ModuleRunConsumer, ProcessOutcome, QueueWorker

__all__ = [
    "HandlerRegistry",
    "ModuleHandler",
    "NoopModuleHandler",
    "RunContext",
    "UnknownModuleHandler",
    "create_default_handlers",
    "ModuleRunConsumer",
    "ProcessOutcome",
    "QueueWorker",
]
