"""
Module Runner - Runtime Bootstrap.

============================================================
RESPONSIBILITY
============================================================
Builds the object graph from configuration.

- Structured logging setup
- Database, clock, queue backend, gateway, service
- Worker consumer and handler registry
- Bootstrap seeding when enabled

All collaborators are created here and passed down explicitly.
Nothing is registered in module-level globals.

============================================================
USAGE
============================================================
    config = RunnerConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    runtime = build_runtime(config)
    runtime.service.create_person_run(...)

============================================================
"""

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Optional

from .dispatch import CeleryJobQueue, DatabaseJobQueue, DispatchGateway, JobQueue, OrphanedRunSweep
from .seeder import BootstrapSeeder, SeedReport
from .service import ModuleRunnerService
from core.clock import ClockProtocol, SystemClock
from core.config import RunnerConfig
from core.exceptions import ConfigurationError
from storage.database import Database
from worker.consumer import ModuleRunConsumer, QueueWorker
from worker.handlers import HandlerRegistry, create_default_handlers
from worker.tasks import create_celery_app, register_tasks


# ============================================================
# LOGGING
# ============================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("module_runner")


logger = logging.getLogger(__name__)


# ============================================================
# RUNTIME
# ============================================================

@dataclass
class Runtime:
    """Everything a process entry point needs."""

    config: RunnerConfig
    database: Database
    clock: ClockProtocol
    queue: JobQueue
    gateway: DispatchGateway
    service: ModuleRunnerService
    handlers: HandlerRegistry
    consumer: ModuleRunConsumer
    celery_app: Optional[Any] = None
    seed_report: Optional[SeedReport] = None

    def orphan_sweep(self) -> OrphanedRunSweep:
        return OrphanedRunSweep(
            self.database,
            self.clock,
            self.gateway,
            threshold_seconds=self.config.orphan_threshold_seconds,
        )

    def queue_worker(self) -> QueueWorker:
        if not isinstance(self.queue, DatabaseJobQueue):
            raise ConfigurationError(
                "The polling worker requires QUEUE_BACKEND=database",
                config_key="QUEUE_BACKEND",
            )
        return QueueWorker(
            self.queue,
            self.consumer,
            poll_interval_seconds=self.config.worker_poll_interval_seconds,
        )


def build_runtime(
    config: RunnerConfig,
    clock: Optional[ClockProtocol] = None,
    database: Optional[Database] = None,
    handlers: Optional[HandlerRegistry] = None,
    seed: Optional[bool] = None,
    create_tables: bool = True,
) -> Runtime:
    """
    Build the runtime from configuration.

    Args:
        config: Validated configuration
        clock: Clock to inject (SystemClock by default)
        database: Existing database (built from config otherwise)
        handlers: Handler registry (noop handler only by default)
        seed: Override config.auto_seed
        create_tables: Create missing tables before seeding

    Raises:
        ConfigurationError: If the configuration is invalid
        SeedingError: If bootstrap seeding fails
    """
    errors = config.validate()
    if errors:
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(errors)}",
            config_key=errors[0].split(" ", 1)[0],
        )

    clock = clock or SystemClock()
    database = database or Database(config.database_url, echo=config.database_echo)

    if create_tables:
        database.create_all()

    celery_app = None
    if config.queue_backend == "celery":
        celery_app = create_celery_app(config)
        queue: JobQueue = CeleryJobQueue(celery_app, queue_name=config.module_runs_queue)
    else:
        queue = DatabaseJobQueue(
            database,
            clock,
            queue_name=config.module_runs_queue,
            max_attempts=config.job_max_attempts,
            claim_timeout_seconds=config.job_claim_timeout_seconds,
        )

    gateway = DispatchGateway(queue)
    service = ModuleRunnerService(
        database,
        clock,
        gateway,
        run_list_default_limit=config.run_list_default_limit,
        run_list_max_limit=config.run_list_max_limit,
    )
    handlers = handlers or create_default_handlers()
    consumer = ModuleRunConsumer(database, clock, handlers)

    runtime = Runtime(
        config=config,
        database=database,
        clock=clock,
        queue=queue,
        gateway=gateway,
        service=service,
        handlers=handlers,
        consumer=consumer,
        celery_app=celery_app,
    )

    if config.auto_seed if seed is None else seed:
        runtime.seed_report = BootstrapSeeder(database, clock).seed_all()
    else:
        logger.info("Module seeding disabled")

    logger.info(
        f"Runtime ready [queue_backend={config.queue_backend}] "
        f"[queue={config.module_runs_queue}] [handlers={','.join(handlers.keys())}]"
    )
    return runtime


def create_worker_app(config: Optional[RunnerConfig] = None) -> Any:
    """Celery app with the execute-module-run task bound to a consumer."""
    config = config or RunnerConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    runtime = build_runtime(config, seed=False)
    app = runtime.celery_app or create_celery_app(config)
    register_tasks(app, runtime.consumer)
    return app
