"""
Explicit Spark schemas for the raw (bronze) source entities.

Raw fields are loosely typed as the source systems deliver them: dates in
the sales feed arrive as 8-digit integers, measures may be null or negative
and enumerations are unvalidated codes.
"""

from pyspark.sql.types import (
    DateType,
    DecimalType,
    IntegerType,
    LongType,
    StringType,
    StructField,
    StructType,
)

# Arrival order of a raw row within its entity feed.
INGEST_SEQ_COLUMN = "_ingest_seq"

MEASURE_TYPE = DecimalType(18, 2)

CRM_CUST_INFO = StructType([
    StructField("cst_id", IntegerType(), True),
    StructField("cst_key", StringType(), True),
    StructField("cst_firstname", StringType(), True),
    StructField("cst_lastname", StringType(), True),
    StructField("cst_marital_status", StringType(), True),
    StructField("cst_gndr", StringType(), True),
    StructField("cst_create_date", DateType(), True),
])

CRM_PRD_INFO = StructType([
    StructField("prd_id", IntegerType(), True),
    StructField("prd_key", StringType(), True),
    StructField("prd_nm", StringType(), True),
    StructField("prd_cost", MEASURE_TYPE, True),
    StructField("prd_line", StringType(), True),
    StructField("prd_start_dt", DateType(), True),
    StructField("prd_end_dt", DateType(), True),
])

CRM_SALES_DETAILS = StructType([
    StructField("sls_ord_num", StringType(), True),
    StructField("sls_prd_key", StringType(), True),
    StructField("sls_cust_id", IntegerType(), True),
    StructField("sls_order_dt", LongType(), True),
    StructField("sls_ship_dt", LongType(), True),
    StructField("sls_due_dt", LongType(), True),
    StructField("sls_sales", MEASURE_TYPE, True),
    StructField("sls_quantity", IntegerType(), True),
    StructField("sls_price", MEASURE_TYPE, True),
])

ERP_CUST_AZ12 = StructType([
    StructField("cid", StringType(), True),
    StructField("bdate", DateType(), True),
    StructField("gen", StringType(), True),
])

ERP_LOC_A101 = StructType([
    StructField("cid", StringType(), True),
    StructField("cntry", StringType(), True),
])

ERP_PX_CAT_G1V2 = StructType([
    StructField("id", StringType(), True),
    StructField("cat", StringType(), True),
    StructField("subcat", StringType(), True),
    StructField("maintenance", StringType(), True),
])

RAW_SCHEMAS: dict[str, StructType] = {
    "crm_cust_info": CRM_CUST_INFO,
    "crm_prd_info": CRM_PRD_INFO,
    "crm_sales_details": CRM_SALES_DETAILS,
    "erp_cust_az12": ERP_CUST_AZ12,
    "erp_loc_a101": ERP_LOC_A101,
    "erp_px_cat_g1v2": ERP_PX_CAT_G1V2,
}
