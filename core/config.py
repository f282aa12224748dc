"""
Core Module - Configuration.

============================================================
RESPONSIBILITY
============================================================
Loads runner configuration from environment variables
(and a local .env file when present).

============================================================
ENVIRONMENT
============================================================
DATABASE_URL                   SQLAlchemy URL
DATABASE_ECHO                  Log SQL statements
AUTO_SEED                      Seed the module catalog at start ("false" disables)
RUN_LIST_DEFAULT_LIMIT         Default page size for run listings
RUN_LIST_MAX_LIMIT             Largest accepted page size
QUEUE_BACKEND                  "database" or "celery"
CELERY_BROKER_URL              Broker for the celery backend
MODULE_RUNS_QUEUE              Queue name for module run jobs
JOB_MAX_ATTEMPTS               Deliveries before a job is marked DEAD
JOB_CLAIM_TIMEOUT_SECONDS      Age after which a claimed job is considered abandoned
WORKER_POLL_INTERVAL_SECONDS   Sleep between empty polls
ORPHAN_THRESHOLD_SECONDS       Age after which a jobless QUEUED run is orphaned
LOG_LEVEL / LOG_FORMAT         Logging setup

============================================================
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_CLAIM_TIMEOUT_SECONDS,
    DEFAULT_JOB_MAX_ATTEMPTS,
    DEFAULT_ORPHAN_THRESHOLD_SECONDS,
    DEFAULT_RUN_LIST_LIMIT,
    MAX_RUN_LIST_LIMIT,
    MODULE_RUNS_QUEUE,
)


QUEUE_BACKENDS = ("database", "celery")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("false", "0", "no", "off")


@dataclass
class RunnerConfig:
    """Configuration for the module runner."""

    # Persistence
    database_url: str = "sqlite:///module_runner.db"
    """SQLAlchemy database URL."""

    database_echo: bool = False
    """Log SQL statements."""

    # Startup
    auto_seed: bool = True
    """Run the bootstrap seeder when the runtime is built."""

    # Run listing
    run_list_default_limit: int = DEFAULT_RUN_LIST_LIMIT
    """Page size when the caller gives no limit."""

    run_list_max_limit: int = MAX_RUN_LIST_LIMIT
    """Requests above this are rejected."""

    # Queue
    queue_backend: str = "database"
    """Where module run jobs are published."""

    celery_broker_url: Optional[str] = None
    """Broker URL for the celery backend."""

    module_runs_queue: str = MODULE_RUNS_QUEUE
    """Queue name for module run jobs."""

    job_max_attempts: int = DEFAULT_JOB_MAX_ATTEMPTS
    """Deliveries before a database job is marked DEAD."""

    job_claim_timeout_seconds: int = DEFAULT_CLAIM_TIMEOUT_SECONDS
    """Claimed jobs older than this are reclaimed or abandoned."""

    # Worker
    worker_poll_interval_seconds: float = 2.0
    """Sleep between polls of an empty queue."""

    orphan_threshold_seconds: int = DEFAULT_ORPHAN_THRESHOLD_SECONDS
    """Age after which a QUEUED run without a job is reconciled."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "RunnerConfig":
        """Load configuration from environment variables."""
        if load_env_file:
            load_dotenv()

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///module_runner.db"),
            database_echo=_env_flag("DATABASE_ECHO", "false"),
            auto_seed=_env_flag("AUTO_SEED", "true"),
            run_list_default_limit=int(os.getenv("RUN_LIST_DEFAULT_LIMIT", str(DEFAULT_RUN_LIST_LIMIT))),
            run_list_max_limit=int(os.getenv("RUN_LIST_MAX_LIMIT", str(MAX_RUN_LIST_LIMIT))),
            queue_backend=os.getenv("QUEUE_BACKEND", "database").lower(),
            celery_broker_url=os.getenv("CELERY_BROKER_URL"),
            module_runs_queue=os.getenv("MODULE_RUNS_QUEUE", MODULE_RUNS_QUEUE),
            job_max_attempts=int(os.getenv("JOB_MAX_ATTEMPTS", str(DEFAULT_JOB_MAX_ATTEMPTS))),
            job_claim_timeout_seconds=int(
                os.getenv("JOB_CLAIM_TIMEOUT_SECONDS", str(DEFAULT_CLAIM_TIMEOUT_SECONDS))
            ),
            worker_poll_interval_seconds=float(os.getenv("WORKER_POLL_INTERVAL_SECONDS", "2.0")),
            orphan_threshold_seconds=int(
                os.getenv("ORPHAN_THRESHOLD_SECONDS", str(DEFAULT_ORPHAN_THRESHOLD_SECONDS))
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.database_url:
            errors.append("DATABASE_URL must be set")

        if self.run_list_max_limit < 1:
            errors.append("RUN_LIST_MAX_LIMIT must be at least 1")

        if not 1 <= self.run_list_default_limit <= self.run_list_max_limit:
            errors.append(
                f"RUN_LIST_DEFAULT_LIMIT must be between 1 and {self.run_list_max_limit}"
            )

        if self.queue_backend not in QUEUE_BACKENDS:
            errors.append(f"QUEUE_BACKEND must be one of {', '.join(QUEUE_BACKENDS)}")

        if self.queue_backend == "celery" and not self.celery_broker_url:
            errors.append("CELERY_BROKER_URL is required when QUEUE_BACKEND=celery")

        if self.job_max_attempts < 1:
            errors.append("JOB_MAX_ATTEMPTS must be at least 1")

        if self.job_claim_timeout_seconds < 1:
            errors.append("JOB_CLAIM_TIMEOUT_SECONDS must be at least 1")

        if self.worker_poll_interval_seconds <= 0:
            errors.append("WORKER_POLL_INTERVAL_SECONDS must be positive")

        if self.orphan_threshold_seconds < 0:
            errors.append("ORPHAN_THRESHOLD_SECONDS cannot be negative")

        if self.log_format not in ("json", "text"):
            errors.append("LOG_FORMAT must be json or text")

        return errors
