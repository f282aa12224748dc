"""
Worker - Celery tasks.

Binds the execute-module-run job to a ModuleRunConsumer when the
celery queue backend is used. module_runner.bootstrap.create_worker_app
returns a fully wired application for a Celery worker process.
"""

import logging

from celery import Celery

from .consumer import ModuleRunConsumer
from core.constants import EXECUTE_MODULE_RUN_JOB
from core.config import RunnerConfig


logger = logging.getLogger(__name__)


def create_celery_app(config: RunnerConfig) -> Celery:
    """Celery application publishing to the configured broker."""
    app = Celery("module_runner", broker=config.celery_broker_url)
    app.conf.task_default_queue = config.module_runs_queue
    app.conf.task_acks_late = True
    return app


def register_tasks(app: Celery, consumer: ModuleRunConsumer) -> None:
    """Register the execute-module-run task on `app`."""

    @app.task(name=EXECUTE_MODULE_RUN_JOB)
    def execute_module_run(run_id: int) -> str:
        logger.info(f"Received module run job [run={run_id}]")
        return consumer.process(int(run_id)).value
