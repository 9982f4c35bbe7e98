"""
Key checks: uniqueness and presence of key columns.
"""

from functools import reduce

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from .base_check import BaseCheck, CheckContext


class UniqueKeyCheck(BaseCheck):
    """
    Flags key values that are null or occur more than once.

    Parameters:
    - columns: key columns whose combination must be unique and non-null
    - allow_nulls: when true, null key parts are left to other checks and
      only repeated combinations are flagged

    Offenders are reported once per distinct key value.
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        parameters = dict(parameters or {})
        # Offenders are grouped rows, so only the checked columns can be reported.
        parameters["key_columns"] = parameters.get("columns")
        super().__init__(name, table, parameters, severity)
        self.columns = list(self.require("columns"))
        self.allow_nulls = bool(self.parameters.get("allow_nulls", False))

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        offending = F.col("count") > 1
        if not self.allow_nulls:
            any_null = reduce(lambda a, b: a | b, [F.col(c).isNull() for c in self.columns])
            offending = offending | any_null
        return df.groupBy(*self.columns).count().filter(offending)

    @property
    def rule_type(self) -> str:
        return "unique_key"


class NotNullCheck(BaseCheck):
    """
    Flags rows where a column is null.

    Parameters:
    - column: column that must be populated
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.column = self.require("column")

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        return df.filter(F.col(self.column).isNull())

    @property
    def rule_type(self) -> str:
        return "not_null"
