"""
Conformance engine: turns each raw entity into its silver (conformed) form.

Each conformer takes the raw DataFrame for one entity plus the run's
processing time and returns the conformed DataFrame, stamped with the
lineage column. No row is rejected here; irreparable values become null or
"N/A" and are reported later by the validation gate.
"""

from datetime import datetime
from typing import Callable

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from medallion_dw.core.domains import Gender, MaritalStatus, ProductLine, country_column
from medallion_dw.core.schema import INGEST_SEQ_COLUMN, MEASURE_TYPE

from .cleaning import (
    LINEAGE_COLUMN,
    category_id,
    deduplicate_latest,
    integer_date,
    null_if_after,
    product_code,
    stamp_lineage,
    strip_prefix,
    with_arrival_order,
)
from .reconciliation import reconcile_measures
from .temporal import assign_validity_intervals

Conformer = Callable[[DataFrame, datetime], DataFrame]

# Prefix some ERP feeds put in front of customer ids.
ERP_CUSTOMER_ID_PREFIX = "NAS"


def conform_customers(raw: DataFrame, processing_time: datetime) -> DataFrame:
    """
    CRM customers: latest record per customer id, trimmed names, decoded
    marital status and gender.
    """
    df = deduplicate_latest(raw, keys=["cst_id"], order_by=["cst_create_date"])
    df = df.select(
        F.col("cst_id"),
        F.trim("cst_key").alias("cst_key"),
        F.trim("cst_firstname").alias("cst_firstname"),
        F.trim("cst_lastname").alias("cst_lastname"),
        MaritalStatus.column("cst_marital_status").alias("cst_marital_status"),
        Gender.column("cst_gndr").alias("cst_gndr"),
        F.col("cst_create_date"),
    )
    return stamp_lineage(df, processing_time)


def conform_products(raw: DataFrame, processing_time: datetime) -> DataFrame:
    """
    CRM products: one row per product version id, composite key split into
    category id and product code, cost defaulted to zero, product line
    decoded and validity intervals derived per product code.
    """
    df = deduplicate_latest(raw, keys=["prd_id"], order_by=["prd_start_dt"])
    df = df.select(
        F.col("prd_id"),
        category_id(F.trim("prd_key")).alias("cat_id"),
        product_code(F.trim("prd_key")).alias("prd_key"),
        F.trim("prd_nm").alias("prd_nm"),
        F.coalesce(F.col("prd_cost"), F.lit(0)).cast(MEASURE_TYPE).alias("prd_cost"),
        ProductLine.column("prd_line").alias("prd_line"),
        F.col("prd_start_dt").cast("date").alias("prd_start_dt"),
        F.col(INGEST_SEQ_COLUMN),
    )
    df = assign_validity_intervals(df, key="prd_key", start="prd_start_dt", end="prd_end_dt")
    df = df.drop(INGEST_SEQ_COLUMN)
    return stamp_lineage(df, processing_time)


def conform_sales(raw: DataFrame, processing_time: datetime) -> DataFrame:
    """
    CRM sales lines: latest arrival per line key, integer dates parsed and
    range-checked, sales and price reconciled against quantity.
    """
    df = with_arrival_order(raw)
    df = df.withColumn("sls_ord_num", F.trim("sls_ord_num")).withColumn(
        "sls_prd_key", F.trim("sls_prd_key")
    )
    df = deduplicate_latest(
        df,
        keys=["sls_ord_num", "sls_prd_key", "sls_cust_id"],
        required_keys=["sls_ord_num"],
    )
    df = df.select(
        F.col("sls_ord_num"),
        F.col("sls_prd_key"),
        F.col("sls_cust_id"),
        integer_date("sls_order_dt").alias("sls_order_dt"),
        integer_date("sls_ship_dt").alias("sls_ship_dt"),
        integer_date("sls_due_dt").alias("sls_due_dt"),
        F.col("sls_sales").cast(MEASURE_TYPE).alias("sls_sales"),
        F.col("sls_quantity"),
        F.col("sls_price").cast(MEASURE_TYPE).alias("sls_price"),
    )
    df = reconcile_measures(df, quantity="sls_quantity", price="sls_price", sales="sls_sales")
    return stamp_lineage(df, processing_time)


def conform_erp_customers(raw: DataFrame, processing_time: datetime) -> DataFrame:
    """
    ERP demographic overrides: id prefix removed, future birth dates nulled,
    gender decoded. Not deduplicated.
    """
    df = raw.select(
        strip_prefix("cid", ERP_CUSTOMER_ID_PREFIX).alias("cid"),
        null_if_after("bdate", processing_time).alias("bdate"),
        Gender.column("gen").alias("gen"),
    )
    return stamp_lineage(df, processing_time)


def conform_locations(raw: DataFrame, processing_time: datetime) -> DataFrame:
    """
    ERP customer locations: id separators removed so the id joins on the CRM
    customer key, country decoded. Not deduplicated.
    """
    df = raw.select(
        F.regexp_replace(F.trim("cid"), "-", "").alias("cid"),
        country_column("cntry").alias("cntry"),
    )
    return stamp_lineage(df, processing_time)


def conform_categories(raw: DataFrame, processing_time: datetime) -> DataFrame:
    """ERP product categories: trimmed only."""
    df = raw.select(
        F.trim("id").alias("id"),
        F.trim("cat").alias("cat"),
        F.trim("subcat").alias("subcat"),
        F.trim("maintenance").alias("maintenance"),
    )
    return stamp_lineage(df, processing_time)


CONFORMERS: dict[str, Conformer] = {
    "crm_cust_info": conform_customers,
    "crm_prd_info": conform_products,
    "crm_sales_details": conform_sales,
    "erp_cust_az12": conform_erp_customers,
    "erp_loc_a101": conform_locations,
    "erp_px_cat_g1v2": conform_categories,
}


def conform(entity: str, raw: DataFrame, processing_time: datetime) -> DataFrame:
    """
    Conform a raw entity by name.

    Raises:
        KeyError: If no conformer is registered for the entity
    """
    try:
        conformer = CONFORMERS[entity]
    except KeyError:
        raise KeyError(f"No conformer registered for entity: {entity}") from None
    return conformer(raw, processing_time)


__all__ = [
    "CONFORMERS",
    "LINEAGE_COLUMN",
    "conform",
    "conform_categories",
    "conform_customers",
    "conform_erp_customers",
    "conform_locations",
    "conform_products",
    "conform_sales",
]
