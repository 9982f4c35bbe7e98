"""
Validity intervals for versioned entities.
"""

from pyspark.sql import DataFrame, Window
from pyspark.sql import functions as F

from medallion_dw.core.schema import INGEST_SEQ_COLUMN


def assign_validity_intervals(
    df: DataFrame,
    key: str,
    start: str,
    end: str,
) -> DataFrame:
    """
    Derive each version's end date from the next version's start date.

    Versions sharing ``key`` are sorted by ``start`` ascending (ties by
    arrival order when available). Each version ends one day before the next
    one starts; the latest version gets a null end and is the active one.

    Args:
        df: Versioned rows
        key: Natural key column
        start: Start date column
        end: End date column to (over)write

    Returns:
        DataFrame with ``end`` populated
    """
    ordering = [F.col(start).asc()]
    if INGEST_SEQ_COLUMN in df.columns:
        ordering.append(F.col(INGEST_SEQ_COLUMN).asc())
    window = Window.partitionBy(key).orderBy(*ordering)

    return df.withColumn(end, F.date_sub(F.lead(F.col(start)).over(window), 1))


def current_versions(df: DataFrame, end: str = "prd_end_dt") -> DataFrame:
    """Rows whose validity interval is open-ended."""
    return df.filter(F.col(end).isNull())
