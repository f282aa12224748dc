"""
Module Runner - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for operators.

- Provides argparse-based CLI with one sub-command per task
- Loads configuration from the environment (.env supported)
- Entry point for the worker and API processes

============================================================
USAGE
============================================================
python -m module_runner.cli init-db
python -m module_runner.cli seed
python -m module_runner.cli list-modules --type COMPOSER --enabled
python -m module_runner.cli worker --max-jobs 10
python -m module_runner.cli reconcile --older-than 600
python -m module_runner.cli serve --port 8000

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from .bootstrap import build_runtime, setup_logging
from .dispatch import OrphanedRunSweep
from .models import ModuleFilters
from .seeder import BootstrapSeeder
from api.app import create_app
from core.config import RunnerConfig
from core.constants import ModuleType
from core.exceptions import ModuleRunnerError
from storage.database import Database


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="module-runner",
        description="Lead enrichment module registry and run orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  init-db       - Create missing tables
  seed          - Seed the module catalog (idempotent)
  list-modules  - Print registered module definitions
  worker        - Process jobs from the database queue
  reconcile     - Re-enqueue QUEUED runs that have no job
  serve         - Run the HTTP API
        """,
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Logging format (default: LOG_FORMAT or text)",
    )

    parser.add_argument(
        "--database-url",
        type=str,
        metavar="URL",
        help="Override DATABASE_URL",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create missing tables")
    subparsers.add_parser("seed", help="Seed the module catalog")

    list_parser = subparsers.add_parser("list-modules", help="List module definitions")
    list_parser.add_argument("--key", type=str, help="Only this module key")
    list_parser.add_argument(
        "--type",
        type=str,
        choices=[t.value for t in ModuleType],
        help="Only this module type",
    )
    enabled_group = list_parser.add_mutually_exclusive_group()
    enabled_group.add_argument("--enabled", dest="is_enabled", action="store_const", const=True)
    enabled_group.add_argument("--disabled", dest="is_enabled", action="store_const", const=False)

    worker_parser = subparsers.add_parser("worker", help="Process queued module runs")
    worker_parser.add_argument(
        "--max-jobs",
        type=int,
        metavar="N",
        help="Exit after N jobs (default: run until interrupted)",
    )
    worker_parser.add_argument(
        "--once",
        action="store_true",
        help="Process at most one job and exit",
    )

    reconcile_parser = subparsers.add_parser("reconcile", help="Re-enqueue orphaned runs")
    reconcile_parser.add_argument(
        "--older-than",
        type=int,
        metavar="SECONDS",
        help="Minimum run age (default: ORPHAN_THRESHOLD_SECONDS)",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


# ============================================================
# CONFIGURATION
# ============================================================

def build_config(args: argparse.Namespace) -> RunnerConfig:
    """Build configuration from the environment plus CLI overrides."""
    config = RunnerConfig.from_env()
    if args.database_url:
        config.database_url = args.database_url
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    return config


# ============================================================
# COMMANDS
# ============================================================

def cmd_init_db(config: RunnerConfig) -> int:
    database = Database(config.database_url, echo=config.database_echo)
    database.verify_connection()
    database.create_all()
    print("Database tables created")
    return 0


def cmd_seed(config: RunnerConfig) -> int:
    runtime = build_runtime(config, seed=False)
    report = BootstrapSeeder(runtime.database, runtime.clock).seed_all()
    print(f"Seeded: {report.seeded}  Skipped: {report.skipped}")
    return 0


def cmd_list_modules(config: RunnerConfig, args: argparse.Namespace) -> int:
    runtime = build_runtime(config)
    filters = ModuleFilters(
        module_key=args.key,
        module_type=args.type,
        is_enabled=args.is_enabled,
    )
    definitions = runtime.service.list_modules(filters)

    print(f"{'ID':>5}  {'KEY':<45} {'VERSION':<8} {'TYPE':<10} {'SCOPE':<14} ENABLED")
    for d in definitions:
        print(
            f"{d.id:>5}  {d.module_key:<45} {d.version:<8} "
            f"{d.module_type:<10} {d.scope:<14} {'yes' if d.is_enabled else 'no'}"
        )
    print(f"\n{len(definitions)} module(s)")
    return 0


def cmd_worker(config: RunnerConfig, args: argparse.Namespace) -> int:
    runtime = build_runtime(config)
    worker = runtime.queue_worker()

    if args.once:
        processed = worker.run_once()
        print("Processed 1 job" if processed else "Queue empty")
        return 0

    try:
        handled = worker.run_forever(max_jobs=args.max_jobs)
    except KeyboardInterrupt:
        worker.stop()
        logger.info("Worker interrupted")
        return 0

    print(f"Handled {handled} job(s)")
    return 0


def cmd_reconcile(config: RunnerConfig, args: argparse.Namespace) -> int:
    runtime = build_runtime(config, seed=False)
    sweep: OrphanedRunSweep = runtime.orphan_sweep()
    report = sweep.sweep(older_than_seconds=args.older_than)

    if not report.supported:
        print("Queue backend cannot report open jobs; nothing reconciled", file=sys.stderr)
        return 1

    print(
        f"Examined: {report.examined}  Requeued: {len(report.requeued)}  "
        f"Failed: {len(report.failed)}"
    )
    return 1 if report.failed else 0


def cmd_serve(config: RunnerConfig, args: argparse.Namespace) -> int:
    app = create_app(build_runtime(config))
    logger.info(f"Starting module runner API on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level=config.log_level.lower())
    return 0


# ============================================================
# MAIN
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    config = build_config(args)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)

    try:
        if args.command == "init-db":
            return cmd_init_db(config)
        if args.command == "seed":
            return cmd_seed(config)
        if args.command == "list-modules":
            return cmd_list_modules(config, args)
        if args.command == "worker":
            return cmd_worker(config, args)
        if args.command == "reconcile":
            return cmd_reconcile(config, args)
        if args.command == "serve":
            return cmd_serve(config, args)
    except ModuleRunnerError as e:
        logger.error(e.to_log_format())
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
