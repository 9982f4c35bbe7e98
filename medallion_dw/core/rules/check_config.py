"""
Check configuration management.

Loads validation gate checks from YAML files and provides a builder for
assembling check batteries in code.
"""

from pathlib import Path
from typing import Any

import yaml

from medallion_dw.core.exceptions import ConfigurationError
from medallion_dw.core.schema import TableRef

SEVERITIES = ("error", "warning")


class CheckConfigLoader:
    """
    Loads validation checks from YAML configuration files.

    Expected YAML format:
    ```yaml
    checks:
      silver.crm_cust_info:
        - name: crm_cust_info_key
          type: unique_key
          params:
            columns: [cst_id]

      gold.fact_sales:
        - name: fact_sales_product_reference
          type: referential_integrity
          severity: error
          params:
            column: product_key
            reference_table: gold.dim_products
            reference_column: product_key
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the check config loader.

        Args:
            config_path: Path to the YAML configuration file

        Raises:
            ConfigurationError: If the file does not exist
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise ConfigurationError(f"Check configuration file not found: {config_path}")

    def load_checks(self) -> list[dict[str, Any]]:
        """
        Load and parse checks from the YAML file.

        Returns:
            List of check dictionaries suitable for ValidationGate

        Raises:
            ConfigurationError: If YAML is invalid or missing required fields
        """
        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or "checks" not in config:
            raise ConfigurationError("Configuration file must contain 'checks' section")

        checks = []
        for table, table_checks in config["checks"].items():
            if not isinstance(table_checks, list):
                raise ConfigurationError(f"Checks for table '{table}' must be a list")

            for idx, check_def in enumerate(table_checks):
                checks.append(self._parse_check(table, check_def, idx))

        names = [c["check_name"] for c in checks]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate check names: {', '.join(duplicates)}")

        return checks

    def _parse_check(self, table: str, check_def: dict[str, Any], idx: int) -> dict[str, Any]:
        """
        Parse a single check definition.

        Args:
            table: Qualified table the check applies to
            check_def: The check definition from YAML
            idx: Index of this check for the table (for naming)

        Returns:
            Parsed check dictionary
        """
        if not isinstance(check_def, dict) or "type" not in check_def:
            raise ConfigurationError(f"Check for table '{table}' is missing 'type'")

        try:
            table = TableRef.parse(table).qualified_name
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        check_type = check_def["type"]
        check_name = check_def.get("name", f"{table.replace('.', '_')}_{check_type}_{idx}")
        parameters = check_def.get("params", check_def.get("parameters", {})) or {}

        severity = check_def.get("severity", "warning")
        if severity not in SEVERITIES:
            raise ConfigurationError(
                f"Invalid severity '{severity}' for check '{check_name}'. Must be 'error' or 'warning'"
            )

        return {
            "check_name": check_name,
            "check_type": check_type,
            "table": table,
            "parameters": parameters,
            "severity": severity,
            "enabled": check_def.get("enabled", True),
        }


class CheckConfigBuilder:
    """
    Programmatically build check configurations (for testing or ad-hoc batteries).
    """

    def __init__(self):
        self.checks: list[dict[str, Any]] = []

    def add(
        self,
        name: str,
        check_type: str,
        table: str,
        severity: str = "warning",
        **parameters: Any,
    ) -> "CheckConfigBuilder":
        """Add a check of any type."""
        if severity not in SEVERITIES:
            raise ConfigurationError(f"Invalid severity '{severity}' for check '{name}'")
        self.checks.append({
            "check_name": name,
            "check_type": check_type,
            "table": table,
            "parameters": parameters,
            "severity": severity,
            "enabled": True,
        })
        return self

    def add_unique_key(self, table: str, columns: list[str], severity: str = "error") -> "CheckConfigBuilder":
        """Add a key uniqueness check."""
        name = f"{TableRef.parse(table).entity}_unique_{'_'.join(columns)}"
        return self.add(name, "unique_key", table, severity, columns=list(columns))

    def add_referential_integrity(
        self,
        table: str,
        column: str,
        reference_table: str,
        reference_column: str | None = None,
        severity: str = "error",
    ) -> "CheckConfigBuilder":
        """Add a foreign key check."""
        name = f"{TableRef.parse(table).entity}_{column}_reference"
        return self.add(
            name,
            "referential_integrity",
            table,
            severity,
            column=column,
            reference_table=reference_table,
            reference_column=reference_column or column,
        )

    def add_domain(self, table: str, column: str, domain: str, severity: str = "warning") -> "CheckConfigBuilder":
        """Add a categorical domain check."""
        name = f"{TableRef.parse(table).entity}_{column}_domain"
        return self.add(name, "domain", table, severity, column=column, domain=domain)

    def add_measure_consistency(
        self,
        table: str,
        quantity: str,
        price: str,
        sales: str,
        severity: str = "warning",
    ) -> "CheckConfigBuilder":
        """Add a sales = quantity * price check."""
        name = f"{TableRef.parse(table).entity}_measure_consistency"
        return self.add(
            name, "measure_consistency", table, severity, quantity=quantity, price=price, sales=sales
        )

    def build(self) -> list[dict[str, Any]]:
        """Build and return the check configuration."""
        return self.checks
