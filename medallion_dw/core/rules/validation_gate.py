"""
Validation gate orchestrating the check battery over silver and gold tables.

The gate builds check instances from configuration, runs them against a
set of table DataFrames and produces a GateReport. Whether a failure blocks
publication is decided by the check's severity.
"""

from datetime import date
from pathlib import Path
from typing import Any, Mapping

from pyspark.sql import DataFrame

from medallion_dw.core.checks import (
    BaseCheck,
    CheckContext,
    DateOrderCheck,
    DateRangeCheck,
    DomainCheck,
    MeasureConsistencyCheck,
    NonNegativeCheck,
    NotNullCheck,
    ReferentialIntegrityCheck,
    UniqueKeyCheck,
    UntrimmedTextCheck,
)
from medallion_dw.core.exceptions import ConfigurationError
from medallion_dw.core.models import GateReport
from medallion_dw.observability.logger import get_logger
from medallion_dw.observability.metrics import record_check_result

from .check_config import CheckConfigLoader

logger = get_logger(__name__)

DEFAULT_CHECKS_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "quality_checks.yaml"


class ValidationGate:
    """
    Runs a battery of checks and reports the offending rows of each.
    """

    CHECK_REGISTRY: dict[str, type[BaseCheck]] = {
        "unique_key": UniqueKeyCheck,
        "not_null": NotNullCheck,
        "untrimmed_text": UntrimmedTextCheck,
        "non_negative": NonNegativeCheck,
        "date_order": DateOrderCheck,
        "date_range": DateRangeCheck,
        "domain": DomainCheck,
        "measure_consistency": MeasureConsistencyCheck,
        "referential_integrity": ReferentialIntegrityCheck,
    }

    def __init__(self, checks: list[dict[str, Any]]):
        """
        Initialize the gate with check configurations.

        Args:
            checks: List of check configurations, each containing:
                    - check_name: str
                    - check_type: str (see CHECK_REGISTRY)
                    - table: str (qualified, e.g. gold.fact_sales)
                    - parameters: Dict[str, Any] (optional)
                    - severity: str (error or warning)
                    - enabled: bool (default True)
        """
        self.checks: list[BaseCheck] = []
        self._build_checks(checks)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ValidationGate":
        """Create a gate from a YAML check configuration."""
        return cls(CheckConfigLoader(path).load_checks())

    @classmethod
    def default(cls) -> "ValidationGate":
        """Create a gate with the packaged default check battery."""
        return cls.from_yaml(DEFAULT_CHECKS_PATH)

    def _build_checks(self, configs: list[dict[str, Any]]) -> None:
        for config in configs:
            if not config.get("enabled", True):
                continue

            check_name = config["check_name"]
            check_type = config["check_type"]
            check_class = self.CHECK_REGISTRY.get(check_type)
            if check_class is None:
                raise ConfigurationError(f"Unknown check type '{check_type}' for check '{check_name}'")

            try:
                check = check_class(
                    check_name,
                    config["table"],
                    dict(config.get("parameters") or {}),
                    config.get("severity", "warning"),
                )
            except ConfigurationError:
                raise
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Failed to create check '{check_name}': {e}") from e

            self.checks.append(check)

    def run(self, tables: Mapping[str, DataFrame], as_of: date | None = None) -> GateReport:
        """
        Run every check whose tables are available.

        Checks on a missing table (or referencing a missing table) are skipped
        with a warning so a partial table set can still be inspected.

        Args:
            tables: Mapping of qualified table name to DataFrame
            as_of: Date that "today" resolves to (defaults to the current date)

        Returns:
            GateReport with one CheckResult per executed check
        """
        context = CheckContext(tables, as_of or date.today())
        results = []

        for check in self.checks:
            missing = [t for t in self._required_tables(check) if not context.has_table(t)]
            if missing:
                logger.warning(
                    f"Skipping check {check.name}: table not available",
                    extra={"check_name": check.name, "missing_tables": missing},
                )
                continue

            result = check.run(context)
            record_check_result(result.check_name, result.severity, result.offending_count)

            if not result.passed:
                log = logger.error if result.blocking else logger.warning
                log(
                    f"Check failed: {result.check_name}",
                    extra={
                        "check_name": result.check_name,
                        "check_type": result.check_type,
                        "table": result.table,
                        "severity": result.severity,
                        "offending_count": result.offending_count,
                        "offending_keys": result.offending_keys[:10],
                    },
                )
            results.append(result)

        report = GateReport(results=results)
        logger.info("Validation gate finished", extra=report.summary())
        return report

    @staticmethod
    def _required_tables(check: BaseCheck) -> list[str]:
        tables = [check.table]
        reference = getattr(check, "reference_table", None)
        if reference:
            tables.append(reference)
        return tables

    def get_check_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded checks.

        Returns:
            Dictionary with check counts by type and severity
        """
        by_type: dict[str, int] = {}
        by_severity: dict[str, int] = {}
        for check in self.checks:
            by_type[check.rule_type] = by_type.get(check.rule_type, 0) + 1
            by_severity[check.severity] = by_severity.get(check.severity, 0) + 1
        return {
            "total_checks": len(self.checks),
            "checks_by_type": by_type,
            "checks_by_severity": by_severity,
        }
