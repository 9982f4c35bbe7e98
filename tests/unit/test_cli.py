"""
Unit tests for the command-line interface.
"""

import argparse

import pytest

from medallion_dw.cli.batch_cli import (
    build_parser,
    create_gate,
    create_store,
    main,
    rollback_command,
    run_command,
)
from medallion_dw.core.rules import ValidationGate
from medallion_dw.warehouse import InMemoryLayerStore


@pytest.mark.unit
class TestArgumentParser:
    """Tests for the argument parser"""

    def test_run_arguments(self):
        """Test parsing a full run command"""
        args = build_parser().parse_args([
            "run", "--input-dir", "data", "--format", "parquet", "--dry-run", "--metrics-port", "9100",
        ])

        assert args.command == "run"
        assert args.input_dir == "data"
        assert args.format == "parquet"
        assert args.dry_run is True
        assert args.metrics_port == 9100
        assert args.db_host is None

    def test_run_defaults(self):
        args = build_parser().parse_args(["run"])

        assert args.format == "csv"
        assert args.dry_run is False
        assert args.checks is None

    def test_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--format", "xml"])

    def test_rollback_tables_repeatable(self):
        args = build_parser().parse_args([
            "rollback", "--table", "gold.fact_sales", "--table", "gold.dim_products", "--db-port", "6543",
        ])

        assert args.table == ["gold.fact_sales", "gold.dim_products"]
        assert args.db_port == 6543

    def test_validate_checks_option(self):
        args = build_parser().parse_args(["validate", "--checks", "battery.yaml"])

        assert args.command == "validate"
        assert args.checks == "battery.yaml"


@pytest.mark.unit
class TestCommands:
    """Tests for command functions that fail before touching Spark or the database"""

    def test_main_without_command_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1

    def test_run_with_missing_input_dir(self, tmp_path):
        """Test that a missing input directory is reported with exit code 1"""
        args = build_parser().parse_args(["run", "--input-dir", str(tmp_path / "absent"), "--dry-run"])

        assert run_command(args) == 1

    def test_main_propagates_exit_code(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "--input-dir", str(tmp_path / "absent")])

        assert exc_info.value.code == 1

    def test_rollback_with_bad_table_name(self):
        args = build_parser().parse_args(["rollback", "--table", "fact_sales"])

        assert rollback_command(args) == 1


@pytest.mark.unit
class TestFactories:
    """Tests for store and gate construction"""

    def test_dry_run_uses_in_memory_store(self, spark_session):
        store = create_store(spark_session, argparse.Namespace(dry_run=True))

        assert isinstance(store, InMemoryLayerStore)

    def test_default_gate(self):
        gate = create_gate(argparse.Namespace(checks=None))

        assert isinstance(gate, ValidationGate)
        assert gate.get_check_summary()["total_checks"] == len(ValidationGate.default().checks)

    def test_gate_from_file(self, tmp_path):
        path = tmp_path / "battery.yaml"
        path.write_text(
            "checks:\n"
            "  gold.dim_customers:\n"
            "    - name: customers_unique\n"
            "      type: unique_key\n"
            "      severity: error\n"
            "      params:\n"
            "        columns: [customer_key]\n"
        )

        gate = create_gate(argparse.Namespace(checks=str(path)))

        assert [c.name for c in gate.checks] == ["customers_unique"]
