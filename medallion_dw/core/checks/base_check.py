"""
Base check interface for the validation gate.

Every check inspects one table and returns the rows that violate its
invariant. An empty result means the check passed.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Mapping

from pyspark.sql import DataFrame

from medallion_dw.core.exceptions import ConfigurationError
from medallion_dw.core.models import CheckResult
from medallion_dw.core.schema import ENTITIES, TableRef


class CheckContext:
    """
    Tables and reference date available to a gate run.

    Args:
        tables: Mapping of qualified table name to DataFrame
        as_of: Date that "today" resolves to in date checks
    """

    def __init__(self, tables: Mapping[str, DataFrame], as_of: date):
        self.tables = dict(tables)
        self.as_of = as_of

    def table(self, qualified_name: str) -> DataFrame:
        try:
            return self.tables[qualified_name]
        except KeyError:
            raise KeyError(f"Table not available to the validation gate: {qualified_name}") from None

    def has_table(self, qualified_name: str) -> bool:
        return qualified_name in self.tables


class BaseCheck(ABC):
    """
    Abstract base class for all checks.

    Parameters shared by every check:
    - key_columns: columns reported for each offending row (defaults to the
      table's business key)
    - max_reported_keys: cap on reported key values (offending_count is
      always exact); None reports every key
    """

    def __init__(
        self,
        name: str,
        table: str,
        parameters: dict[str, Any] | None = None,
        severity: str = "warning",
    ):
        self.name = name
        self.table = TableRef.parse(table).qualified_name
        self.parameters = parameters or {}
        self.severity = severity
        self.key_columns = list(self.parameters.get("key_columns") or self._default_key_columns())
        self.max_reported_keys = self.parameters.get("max_reported_keys", 100)

    def _default_key_columns(self) -> tuple[str, ...]:
        entity = ENTITIES.get(TableRef.parse(self.table).entity)
        if entity is None:
            raise ConfigurationError(
                f"Check '{self.name}' on unknown table {self.table} must set key_columns"
            )
        return entity.business_key

    def require(self, parameter: str) -> Any:
        """Fetch a mandatory parameter."""
        value = self.parameters.get(parameter)
        if value is None or value == []:
            raise ConfigurationError(
                f"Check '{self.name}' ({self.rule_type}) requires parameter '{parameter}'"
            )
        return value

    @abstractmethod
    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        """
        Select the rows of ``df`` that violate this check.

        Args:
            df: The table under check
            context: All tables of the gate run

        Returns:
            DataFrame containing at least the key columns
        """

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the check type identifier."""

    def run(self, context: CheckContext) -> CheckResult:
        """
        Execute the check against its table.

        Args:
            context: Tables of the gate run

        Returns:
            CheckResult listing the offending keys
        """
        df = context.table(self.table)
        offenders = self.find_offenders(df, context).select(*self.key_columns)
        offending_count = offenders.count()

        keys: list[dict[str, Any]] = []
        if offending_count:
            limited = offenders if self.max_reported_keys is None else offenders.limit(self.max_reported_keys)
            keys = [row.asDict() for row in limited.collect()]

        return CheckResult(
            check_name=self.name,
            check_type=self.rule_type,
            table=self.table,
            severity=self.severity,
            passed=offending_count == 0,
            offending_count=offending_count,
            offending_keys=keys,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, table={self.table}, params={self.parameters})"
