"""
Deterministic surrogate keys for dimension rows.
"""

from typing import Sequence

from pyspark.sql import DataFrame, Window
from pyspark.sql import functions as F


def assign_surrogate_keys(df: DataFrame, key_column: str, order_by: Sequence[str]) -> DataFrame:
    """
    Number rows 1..n in ascending ``order_by`` order.

    Rows that tie on ``order_by`` are ordered by their remaining columns, so
    the same row set always receives the same keys.

    The numbering only repeats across runs when the input rows and their
    ordering columns are unchanged, so the keys must not be used as
    permanent external identifiers.

    Args:
        df: Dimension rows
        key_column: Name of the surrogate key column to add
        order_by: Columns defining the numbering order, most significant first

    Returns:
        DataFrame with the surrogate key as its first column
    """
    if not order_by:
        raise ValueError("Surrogate key assignment requires at least one ordering column")

    tie_breakers = [c for c in df.columns if c not in order_by and c != key_column]
    window = Window.orderBy(*[F.col(c).asc() for c in [*order_by, *tie_breakers]])
    keyed = df.withColumn(key_column, F.row_number().over(window))
    return keyed.select(key_column, *[c for c in df.columns if c != key_column])
