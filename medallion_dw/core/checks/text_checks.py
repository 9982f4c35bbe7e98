"""
Text checks: untrimmed values and categorical domain membership.
"""

from functools import reduce

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from medallion_dw.core import domains
from medallion_dw.core.exceptions import ConfigurationError

from .base_check import BaseCheck, CheckContext


class UntrimmedTextCheck(BaseCheck):
    """
    Flags rows where any of the given columns has leading or trailing whitespace.

    Parameters:
    - columns: text columns to inspect
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.columns = list(self.require("columns"))

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        untrimmed = [F.col(c) != F.trim(F.col(c)) for c in self.columns]
        return df.filter(reduce(lambda a, b: a | b, untrimmed))

    @property
    def rule_type(self) -> str:
        return "untrimmed_text"


# Domains that can be referenced by name from configuration.
NAMED_DOMAINS = {
    "marital_status": domains.MaritalStatus,
    "gender": domains.Gender,
    "product_line": domains.ProductLine,
}


class DomainCheck(BaseCheck):
    """
    Flags rows whose value is null or outside an allowed set.

    Parameters:
    - column: column to inspect
    - values: explicit list of allowed values, or
    - domain: name of a categorical domain (marital_status, gender, product_line)
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.column = self.require("column")
        self.allowed = self._resolve_allowed()

    def _resolve_allowed(self) -> list[str]:
        if self.parameters.get("values"):
            return list(self.parameters["values"])
        domain_name = self.require("domain")
        try:
            return NAMED_DOMAINS[domain_name].labels()
        except KeyError:
            raise ConfigurationError(
                f"Check '{self.name}' references unknown domain '{domain_name}'"
            ) from None

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        value = F.col(self.column)
        return df.filter(value.isNull() | ~value.isin(self.allowed))

    @property
    def rule_type(self) -> str:
        return "domain"
