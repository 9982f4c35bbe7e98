"""
MeasureConsistencyCheck - validates that sales = quantity * price with all measures positive.
"""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from .base_check import BaseCheck, CheckContext


class MeasureConsistencyCheck(BaseCheck):
    """
    Flags rows whose measures are missing, non-positive or inconsistent.

    Parameters:
    - quantity: quantity column
    - price: price column
    - sales: sales column
    """

    def __init__(self, name, table, parameters=None, severity="warning"):
        super().__init__(name, table, parameters, severity)
        self.quantity = self.require("quantity")
        self.price = self.require("price")
        self.sales = self.require("sales")

    def find_offenders(self, df: DataFrame, context: CheckContext) -> DataFrame:
        q, p, s = F.col(self.quantity), F.col(self.price), F.col(self.sales)
        condition = (
            q.isNull() | p.isNull() | s.isNull()
            | (q <= 0) | (p <= 0) | (s <= 0)
            | (s != q * p)
        )
        return df.filter(condition)

    @property
    def rule_type(self) -> str:
        return "measure_consistency"
