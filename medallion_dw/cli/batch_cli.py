"""
Command-line interface for the warehouse batch.

Usage:
    medallion-dw run --input-dir <dir> [options]
    medallion-dw validate [options]
    medallion-dw rollback [--table gold.fact_sales ...] [options]
"""

import argparse
import os
import sys

import psycopg
from dotenv import load_dotenv
from pyspark.sql import SparkSession

from medallion_dw.batch.pipeline import BatchPipeline
from medallion_dw.batch.readers import FileRawSource
from medallion_dw.core.exceptions import PipelineError, StoreError
from medallion_dw.core.models import BatchState, GateReport
from medallion_dw.core.rules import ValidationGate
from medallion_dw.core.schema import GOLD_BUILD_ORDER, TableRef, get_entity
from medallion_dw.observability.logger import get_logger
from medallion_dw.observability.metrics import start_metrics_server
from medallion_dw.utils.validation import ValidationError, validate_directory
from medallion_dw.warehouse.connection import DatabaseConnectionPool
from medallion_dw.warehouse.postgres_store import PostgresLayerStore
from medallion_dw.warehouse.schema_mgmt import SchemaManager
from medallion_dw.warehouse.store import InMemoryLayerStore, LayerStore

logger = get_logger(__name__)


def create_spark_session(app_name: str = "medallion-dw") -> SparkSession:
    """
    Create Spark session for batch processing.

    ANSI mode is off so malformed values parse to null instead of failing
    the job; the session time zone is UTC.

    Args:
        app_name: Application name

    Returns:
        SparkSession
    """
    spark = SparkSession.builder \
        .appName(app_name) \
        .master(os.getenv("SPARK_MASTER", "local[*]")) \
        .config("spark.sql.adaptive.enabled", "true") \
        .config("spark.sql.adaptive.coalescePartitions.enabled", "true") \
        .config("spark.sql.ansi.enabled", "false") \
        .config("spark.sql.session.timeZone", "UTC") \
        .getOrCreate()

    return spark


def create_store(spark: SparkSession, args) -> LayerStore:
    """Build the layer store the command runs against."""
    if getattr(args, "dry_run", False):
        logger.info("DRY RUN MODE: using an in-memory store, nothing is written to the database")
        return InMemoryLayerStore(spark)

    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    try:
        pool.open()
        SchemaManager(pool).initialize()
    except psycopg.Error as e:
        pool.close()
        raise StoreError(f"Cannot prepare the database: {e}", code=e.sqlstate) from e
    return PostgresLayerStore(spark, pool)


def create_gate(args) -> ValidationGate:
    if args.checks:
        return ValidationGate.from_yaml(args.checks)
    return ValidationGate.default()


def log_report(report: GateReport) -> None:
    """Log one line per failed check and a summary."""
    for result in report.results:
        if not result.passed:
            logger.info(
                f"[{result.severity.upper()}] {result.check_name} on {result.table}: "
                f"{result.offending_count} offending row(s)"
            )
    summary = report.summary()
    logger.info(
        f"Checks: {summary['total_checks']} run, {summary['passed']} passed, "
        f"{summary['blocking_failures']} blocking, {summary['warnings']} warning(s)"
    )


def run_command(args) -> int:
    """
    Execute a full batch run.

    Returns:
        Exit code: 0 when the run published, 1 otherwise
    """
    try:
        input_dir = validate_directory(args.input_dir or os.getenv("DW_INPUT_DIR", ""))
    except ValidationError as e:
        logger.error(str(e))
        return 1

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    spark = create_spark_session()
    store = None
    try:
        store = create_store(spark, args)
        pipeline = BatchPipeline(
            spark=spark,
            store=store,
            source=FileRawSource(spark, input_dir, file_format=args.format),
            gate=create_gate(args),
        )
        run = pipeline.run()

        logger.info("=" * 60)
        logger.info(f"BATCH {run.state.value.upper()} (run {run.run_id})")
        logger.info("=" * 60)
        for entity in run.entities:
            logger.info(f"{entity.table}: {entity.row_count} rows in {entity.duration_seconds}s")
        if run.report is not None:
            log_report(run.report)
        if run.error is not None:
            logger.info(f"Error [{run.error.code}] at {run.error.state}: {run.error.message}")
        logger.info("=" * 60)

        return 0 if run.state == BatchState.PUBLISHED else 1
    except PipelineError as e:
        logger.error(f"Batch could not start: {e}", extra={"error_code": e.code})
        return 1
    finally:
        if store is not None:
            store.close()
        spark.stop()


def validate_command(args) -> int:
    """
    Run the validation gate over the published relations.

    Returns:
        Exit code: 0 when no blocking check failed, 1 otherwise
    """
    spark = create_spark_session()
    store = None
    try:
        store = create_store(spark, args)
        pipeline = BatchPipeline(spark=spark, store=store, source=None, gate=create_gate(args))
        report = pipeline.validate()
        log_report(report)
        return 0 if report.passed else 1
    except PipelineError as e:
        logger.error(f"Validation failed: {e}", extra={"error_code": e.code})
        return 1
    finally:
        if store is not None:
            store.close()
        spark.stop()


def rollback_command(args) -> int:
    """
    Point relations back at their previously published generation.

    All named tables move together; if any of them has nothing to roll back
    to, none is changed.

    Returns:
        Exit code: 0 when every table was rolled back, 1 otherwise
    """
    try:
        tables = [TableRef.parse(t) for t in args.table] if args.table else [
            get_entity(entity).table for entity in GOLD_BUILD_ORDER
        ]
    except ValueError as e:
        logger.error(str(e))
        return 1

    spark = create_spark_session()
    store = None
    try:
        store = create_store(spark, args)
        for generation in store.rollback_all(tables):
            logger.info(f"{generation.table}: now at generation {generation.generation_id} (run {generation.run_id})")
        return 0
    except PipelineError as e:
        logger.error(f"Rollback failed: {e}", extra={"error_code": e.code})
        return 1
    finally:
        if store is not None:
            store.close()
        spark.stop()


def add_database_arguments(parser: argparse.ArgumentParser) -> None:
    """Database connection options; unset options fall back to DB_* environment variables."""
    parser.add_argument("--db-host", help="Database host (default: $DB_HOST or localhost)")
    parser.add_argument("--db-port", type=int, help="Database port (default: $DB_PORT or 5432)")
    parser.add_argument("--db-name", help="Database name (default: $DB_NAME or datawarehouse)")
    parser.add_argument("--db-user", help="Database user (default: $DB_USER or pipeline)")
    parser.add_argument("--db-password", help="Database password (default: $DB_PASSWORD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="medallion-dw",
        description="Raw -> silver -> gold warehouse batch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full batch from CSV feeds under data/
  medallion-dw run --input-dir data

  # Dry run against an in-memory store
  medallion-dw run --input-dir data --dry-run

  # Re-check the published layers with a custom battery
  medallion-dw validate --checks config/strict_checks.yaml

  # Undo the last gold publication
  medallion-dw rollback
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run the full transform batch")
    run_parser.add_argument(
        "--input-dir",
        help="Directory holding source_crm/ and source_erp/ (default: $DW_INPUT_DIR)"
    )
    run_parser.add_argument(
        "--format",
        default="csv",
        choices=["csv", "json", "parquet"],
        help="Raw feed file format (default: csv)"
    )
    run_parser.add_argument("--checks", help="Path to a check battery YAML file")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run against an in-memory store without writing to the database"
    )
    run_parser.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
    add_database_arguments(run_parser)

    validate_parser = subparsers.add_parser("validate", help="Validate the published relations")
    validate_parser.add_argument("--checks", help="Path to a check battery YAML file")
    add_database_arguments(validate_parser)

    rollback_parser = subparsers.add_parser("rollback", help="Restore previously published generations")
    rollback_parser.add_argument(
        "--table",
        action="append",
        help="Qualified table to roll back, repeatable (default: all gold tables)"
    )
    add_database_arguments(rollback_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "run": run_command,
        "validate": validate_command,
        "rollback": rollback_command,
    }
    sys.exit(commands[args.command](args))


if __name__ == "__main__":
    main()
