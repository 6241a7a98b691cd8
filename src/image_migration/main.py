"""Main module for the image migration CLI."""

import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import (
    ImageMigrationError,
    MigrationConfig,
    MigrationSummary,
    get_logger,
    set_debug,
)
from .core.factories import LoggerFactory, MigrationPipelineFactory
from .core.observability import MetricsCollector
from .core.services import summarize_metrics
from .processors import PROCESSORS
from .reporting import LoggingObserver, format_configuration, format_summary
from .store import SqlImageRecordStore


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with the migrate, check and version commands."""
    parser = argparse.ArgumentParser(
        prog="image-migration",
        description="Move locally stored property images to the CDN bucket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload every image that is not migrated yet
  image-migration migrate

  # Re-upload everything into the remote database's records
  image-migration migrate --force --remote

  # Check credentials, bucket and database, including a test upload
  image-migration check --self-test
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate_parser = subparsers.add_parser(
        "migrate", help="Upload pending images and record their CDN URLs"
    )
    migrate_parser.add_argument(
        "--force",
        action="store_true",
        help="Re-upload images that are already marked as migrated",
    )
    migrate_parser.add_argument(
        "--remote", action="store_true", help="Use the remote record store"
    )
    migrate_parser.add_argument(
        "--processor",
        type=str,
        default="multithread",
        choices=sorted(PROCESSORS),
        help="How each batch is uploaded (default: multithread)",
    )
    migrate_parser.add_argument(
        "--batch-size", type=int, default=None, help="Concurrent uploads per batch"
    )
    migrate_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    check_parser = subparsers.add_parser(
        "check", help="Validate upload settings and record store connectivity"
    )
    check_parser.add_argument(
        "--remote", action="store_true", help="Check the remote record store"
    )
    check_parser.add_argument(
        "--self-test",
        action="store_true",
        help="Upload and delete a small test image",
    )

    subparsers.add_parser("version", help="Show version information")
    return parser


def run_migrate(args: argparse.Namespace) -> int:
    logger = get_logger("cli")
    config = MigrationConfig.from_env(
        force=args.force,
        remote=args.remote,
        processor=args.processor,
        batch_size=args.batch_size,
        debug=args.debug,
    )
    set_debug(config.debug)

    print(format_configuration(config))

    metrics_collector = MetricsCollector()
    try:
        pipeline = MigrationPipelineFactory.create_pipeline(
            config,
            observer=LoggingObserver(LoggerFactory.create_logger("progress")),
            metrics_collector=metrics_collector,
        )
    except Exception as e:
        # e.g. a malformed DATABASE_URL rejected while opening the store
        logger.error(f"Could not build the migration pipeline: {e}", exc_info=True)
        summary = MigrationSummary(
            success=False,
            errors=[f"Migration failed: {e}"],
            remote=config.remote,
            force=config.force,
        )
        print(format_summary(summary))
        return 1

    summary = pipeline.run(force=config.force, remote=config.remote)

    print(format_summary(summary, summarize_metrics(metrics_collector)))
    if not summary.success:
        logger.error("Migration did not complete, see errors above")
    return 0 if summary.success else 1


def run_check(args: argparse.Namespace) -> int:
    config = MigrationConfig.from_env(remote=args.remote)
    ok = True

    store = SqlImageRecordStore.from_config(config, remote=config.remote)
    diagnostics = store.diagnostics()
    if diagnostics.is_connected:
        print(
            f"Record store: OK ({diagnostics.database_type}, "
            f"{diagnostics.response_time_ms:.0f}ms)"
        )
        if config.remote and not diagnostics.is_remote:
            print("Record store: WARNING expected remote connection but got local database")
    else:
        print(f"Record store: FAILED ({diagnostics.error})")
        ok = False

    upload_service = MigrationPipelineFactory.create_upload_service(config)
    try:
        upload_service.check_connection()
        print(f"Upload service: OK (bucket {config.bucket})")
        if args.self_test:
            result = upload_service.self_test()
            print(f"Self-test: OK ({result.remote_id} uploaded and deleted)")
    except ImageMigrationError as e:
        print(f"Upload service: FAILED ({e})")
        ok = False

    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the image migration command-line interface.

    Exits with status 0 when the command succeeded and 1 otherwise.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Property Image Migration CLI")
        print(f"Version {__version__}")
        sys.exit(0)
        return

    if args.command not in ("migrate", "check"):
        parser.print_help()
        sys.exit(1)
        return

    logger = get_logger("cli")
    try:
        if args.command == "migrate":
            exit_code = run_migrate(args)
        else:
            exit_code = run_check(args)
    except KeyboardInterrupt:
        logger.warning("Migration interrupted by user. Unmigrated images stay pending.")
        exit_code = 1
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
