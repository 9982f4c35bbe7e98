"""
Range checks for numeric and date columns.
"""

from datetime import date
from typing import Any

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from medallion_dw.core.exceptions import ConfigurationError

from .base_check import BaseCheck, CheckContext


class NonNegativeCheck(BaseCheck):
    """
    Flags rows where a numeric column is negative (or null).

    Parameters:
    - column: numeric column
    - allow_null: accept nulls (default False)
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.column = self.require("column")
        self.allow_null = bool(self.parameters.get("allow_null", False))

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        value = F.col(self.column)
        condition = value < 0
        if not self.allow_null:
            condition = value.isNull() | condition
        return df.filter(condition)

    @property
    def rule_type(self) -> str:
        return "non_negative"


class DateOrderCheck(BaseCheck):
    """
    Flags rows where an end date precedes a start date.

    Rows with either date missing are not flagged.

    Parameters:
    - start: start date column
    - end: end date column
    - strict: also flag end == start (default False)
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.start = self.require("start")
        self.end = self.require("end")
        self.strict = bool(self.parameters.get("strict", False))

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        start, end = F.col(self.start), F.col(self.end)
        condition = end <= start if self.strict else end < start
        return df.filter(condition)

    @property
    def rule_type(self) -> str:
        return "date_order"


def resolve_date(value: Any, as_of: date) -> date | None:
    """
    Resolve a configured date bound.

    Accepts a date, an ISO string, or "today" for the gate's reference date.
    """
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip().lower()
    if text == "today":
        return as_of
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ConfigurationError(f"Invalid date bound: {value!r}") from None


class DateRangeCheck(BaseCheck):
    """
    Flags rows whose date falls outside [min, max].

    Null dates are not flagged.

    Parameters:
    - column: date column
    - min: lower bound (inclusive), ISO date or "today"
    - max: upper bound (inclusive), ISO date or "today"
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.column = self.require("column")
        if self.parameters.get("min") is None and self.parameters.get("max") is None:
            raise ConfigurationError(f"Check '{self.name}' requires at least one of: min, max")

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        value = F.col(self.column)
        lower = resolve_date(self.parameters.get("min"), context.as_of)
        upper = resolve_date(self.parameters.get("max"), context.as_of)

        condition = F.lit(False)
        if lower is not None:
            condition = condition | (value < F.lit(lower))
        if upper is not None:
            condition = condition | (value > F.lit(upper))
        return df.filter(condition)

    @property
    def rule_type(self) -> str:
        return "date_range"
