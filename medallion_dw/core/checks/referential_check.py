"""
ReferentialIntegrityCheck - validates that fact foreign keys resolve to a dimension row.
"""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from medallion_dw.core.schema import TableRef

from .base_check import BaseCheck, CheckContext


class ReferentialIntegrityCheck(BaseCheck):
    """
    Flags rows whose foreign key is null or has no match in the referenced table.

    Parameters:
    - column: foreign key column in the checked table
    - reference_table: qualified name of the referenced table
    - reference_column: key column in the referenced table
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.column = self.require("column")
        self.reference_table = TableRef.parse(self.require("reference_table")).qualified_name
        self.reference_column = self.require("reference_column")

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        reference = (
            context.table(self.reference_table)
            .select(F.col(self.reference_column).alias("_reference_key"))
            .distinct()
        )
        # A null key never matches, so the anti join keeps it as well.
        return df.join(
            reference,
            df[self.column] == reference["_reference_key"],
            "left_anti",
        )

    @property
    def rule_type(self) -> str:
        return "referential_integrity"
