"""
Reconciliation of derived sales measures.

Quantity is authoritative. Sales is recomputed from quantity and the
absolute price whenever it is missing, non-positive or inconsistent; price
is then recomputed from the reconciled sales whenever it is missing or
non-positive. A derived price is rounded to cents, so sales is restated as
quantity * price afterwards. A division by a zero or missing quantity yields
null.
"""

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F

from medallion_dw.core.schema import MEASURE_TYPE


def reconciled_sales(quantity: Column, price: Column, sales: Column) -> Column:
    """
    Sales after repair: kept when positive and equal to quantity * |price|.

    When price is null the consistency comparison is unknown, so a positive
    sales value is kept as-is.
    """
    expected = (quantity * F.abs(price)).cast(MEASURE_TYPE)
    needs_repair = sales.isNull() | (sales <= 0) | (sales != expected)
    return F.when(needs_repair, expected).otherwise(sales).cast(MEASURE_TYPE)


def reconciled_price(quantity: Column, price: Column, sales: Column) -> Column:
    """
    Price after repair: kept when positive, otherwise sales / quantity.

    Args:
        quantity: Quantity column
        price: Raw price column
        sales: Already reconciled sales column
    """
    derived = F.when(
        quantity.isNull() | (quantity == 0),
        F.lit(None).cast(MEASURE_TYPE),
    ).otherwise((sales / quantity).cast(MEASURE_TYPE))
    return F.when(price.isNull() | (price <= 0), derived).otherwise(price).cast(MEASURE_TYPE)


def reconcile_measures(
    df: DataFrame,
    quantity: str = "sls_quantity",
    price: str = "sls_price",
    sales: str = "sls_sales",
) -> DataFrame:
    """
    Repair the sales/price pair of every row so that sales = quantity * price.

    Args:
        df: DataFrame holding the three measure columns
        quantity: Quantity column name
        price: Price column name
        sales: Sales column name

    Returns:
        DataFrame with reconciled sales and price columns (quantity untouched)
    """
    q, p, s = F.col(quantity), F.col(price), F.col(sales)
    df = df.withColumn("_reconciled_sales", reconciled_sales(q, p, s))
    df = df.withColumn(price, reconciled_price(q, p, F.col("_reconciled_sales")))
    restated = (q * F.col(price)).cast(MEASURE_TYPE)
    return df.withColumn(sales, F.coalesce(restated, F.col("_reconciled_sales"))).drop("_reconciled_sales")
