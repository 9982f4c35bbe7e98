"""
Column-level cleaning helpers shared by the entity conformers.

Every helper either returns a Spark Column expression or a transformed
DataFrame; none of them fail on bad data. Unrecoverable values become null
and are left for the validation gate to report.
"""

from datetime import date, datetime, timezone
from functools import reduce
from typing import Iterable, Sequence

from pyspark.sql import Column, DataFrame, Window
from pyspark.sql import functions as F

from medallion_dw.core.schema import INGEST_SEQ_COLUMN

LINEAGE_COLUMN = "dwh_create_date"

# Inclusive bounds for dates delivered as yyyyMMdd integers.
MIN_INTEGER_DATE = 19000101
MAX_INTEGER_DATE = 20500101


def _col(column: Column | str) -> Column:
    return F.col(column) if isinstance(column, str) else column


def with_arrival_order(df: DataFrame) -> DataFrame:
    """
    Ensure the DataFrame carries an arrival-order column.

    Readers add it while loading; DataFrames built elsewhere get one here
    in their current row order.

    Args:
        df: Raw DataFrame

    Returns:
        DataFrame with INGEST_SEQ_COLUMN
    """
    if INGEST_SEQ_COLUMN in df.columns:
        return df
    return df.withColumn(INGEST_SEQ_COLUMN, F.monotonically_increasing_id())


def trim_columns(df: DataFrame, columns: Iterable[str]) -> DataFrame:
    """Trim leading and trailing whitespace on the given string columns."""
    for name in columns:
        df = df.withColumn(name, F.trim(F.col(name)))
    return df


def deduplicate_latest(
    df: DataFrame,
    keys: Sequence[str],
    order_by: Sequence[str] = (),
    required_keys: Sequence[str] | None = None,
) -> DataFrame:
    """
    Keep one row per business key: the one with the greatest ordering value.

    Rows are ranked within each key by the ``order_by`` columns descending
    (nulls last), then by arrival order descending, so among rows with equal
    timestamps the one that arrived last wins.

    Args:
        df: Input DataFrame
        keys: Business key columns
        order_by: Recency columns, most significant first
        required_keys: Key columns that must be non-null for a row to be
            kept (defaults to all key columns)

    Returns:
        Deduplicated DataFrame with the same columns
    """
    df = with_arrival_order(df)

    required = list(keys if required_keys is None else required_keys)
    if required:
        df = df.filter(reduce(lambda a, b: a & b, [F.col(k).isNotNull() for k in required]))

    ordering = [F.col(c).desc_nulls_last() for c in order_by]
    ordering.append(F.col(INGEST_SEQ_COLUMN).desc())
    window = Window.partitionBy(*keys).orderBy(*ordering)

    return (
        df.withColumn("_rank", F.row_number().over(window))
        .filter(F.col("_rank") == 1)
        .drop("_rank")
    )


def integer_date(
    column: Column | str,
    min_value: int = MIN_INTEGER_DATE,
    max_value: int = MAX_INTEGER_DATE,
) -> Column:
    """
    Parse a yyyyMMdd integer into a date, or null if it is not plausible.

    A value is accepted only if it is non-zero, exactly 8 digits and within
    [min_value, max_value]. Values that pass those checks but are not real
    calendar dates also come out null.

    Args:
        column: Integer column
        min_value: Smallest accepted value
        max_value: Largest accepted value

    Returns:
        Date column
    """
    value = _col(column)
    text = value.cast("string")
    invalid = (
        value.isNull()
        | (value == 0)
        | (F.length(text) != 8)
        | (value < min_value)
        | (value > max_value)
    )
    return F.when(invalid, F.lit(None).cast("date")).otherwise(F.to_date(text, "yyyyMMdd"))


def null_if_after(column: Column | str, as_of: date | datetime) -> Column:
    """Null out dates later than ``as_of`` (e.g. birth dates in the future)."""
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    value = _col(column)
    return F.when(value > F.lit(as_of), F.lit(None).cast("date")).otherwise(value)


def strip_prefix(column: Column | str, prefix: str) -> Column:
    """Remove a known noise prefix from an identifier, leaving others untouched."""
    value = F.trim(_col(column))
    return F.when(
        value.startswith(prefix),
        value.substr(F.lit(len(prefix) + 1), F.length(value)),
    ).otherwise(value)


def category_id(product_key: Column | str, width: int = 5) -> Column:
    """Category id: the first ``width`` characters of a product key, '-' replaced by '_'."""
    return F.regexp_replace(F.substring(_col(product_key), 1, width), "-", "_")


def product_code(product_key: Column | str, start: int = 7) -> Column:
    """Product code: the product key from 1-based position ``start`` onward."""
    value = _col(product_key)
    return value.substr(F.lit(start), F.length(value))


def stamp_lineage(df: DataFrame, processing_time: datetime) -> DataFrame:
    """
    Add the processing timestamp lineage column.

    Sub-second precision is dropped so the stamp survives serialization
    unchanged. A naive processing time is taken to be UTC; the literal is
    built from an aware value so the host timezone never shifts it.
    """
    if processing_time.tzinfo is None:
        processing_time = processing_time.replace(tzinfo=timezone.utc)
    stamp = processing_time.astimezone(timezone.utc).replace(microsecond=0)
    return df.withColumn(LINEAGE_COLUMN, F.lit(stamp).cast("timestamp"))
