"""
Star schema builder: gold dimensions and fact from conformed silver entities.

Dimensions left-join their primary conformed entity with the reference
entities and receive surrogate keys. The fact left-joins the sales lines to
both dimensions on natural keys; lines that match no dimension row keep a
null surrogate key so the validation gate can report them.
"""

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F

from medallion_dw.core.domains import NOT_AVAILABLE, Gender

from .surrogate_keys import assign_surrogate_keys
from .temporal import current_versions


def preferred_gender(primary: str, fallback: str) -> Column:
    """
    Primary gender unless it is the N/A sentinel, then the fallback source,
    then N/A.
    """
    return F.when(
        F.col(primary) != F.lit(Gender.NOT_AVAILABLE.value), F.col(primary)
    ).otherwise(F.coalesce(F.col(fallback), F.lit(Gender.NOT_AVAILABLE.value)))


def build_dim_customers(
    customers: DataFrame,
    erp_customers: DataFrame,
    locations: DataFrame,
) -> DataFrame:
    """
    Build gold.dim_customers.

    Args:
        customers: silver.crm_cust_info
        erp_customers: silver.erp_cust_az12
        locations: silver.erp_loc_a101

    Returns:
        Customer dimension keyed by customer_key (ordered by customer_id)
    """
    ci = customers.alias("ci")
    ca = erp_customers.alias("ca")
    la = locations.alias("la")

    joined = (
        ci.join(ca, F.col("ci.cst_key") == F.col("ca.cid"), "left")
        .join(la, F.col("ci.cst_key") == F.col("la.cid"), "left")
    )
    dim = joined.select(
        F.col("ci.cst_id").alias("customer_id"),
        F.col("ci.cst_key").alias("customer_number"),
        F.col("ci.cst_firstname").alias("first_name"),
        F.col("ci.cst_lastname").alias("last_name"),
        F.coalesce(F.col("la.cntry"), F.lit(NOT_AVAILABLE)).alias("country"),
        F.col("ci.cst_marital_status").alias("marital_status"),
        preferred_gender("ci.cst_gndr", "ca.gen").alias("gender"),
        F.col("ca.bdate").alias("birthdate"),
        F.col("ci.cst_create_date").alias("create_date"),
    )
    return assign_surrogate_keys(dim, "customer_key", order_by=["customer_id"])


def build_dim_products(products: DataFrame, categories: DataFrame) -> DataFrame:
    """
    Build gold.dim_products from the currently active product versions.

    Args:
        products: silver.crm_prd_info
        categories: silver.erp_px_cat_g1v2

    Returns:
        Product dimension keyed by product_key (ordered by start date, then
        product number)
    """
    pn = current_versions(products, end="prd_end_dt").alias("pn")
    pc = categories.alias("pc")

    joined = pn.join(pc, F.col("pn.cat_id") == F.col("pc.id"), "left")
    dim = joined.select(
        F.col("pn.prd_id").alias("product_id"),
        F.col("pn.prd_key").alias("product_number"),
        F.col("pn.prd_nm").alias("product_name"),
        F.col("pn.cat_id").alias("category_id"),
        F.col("pc.cat").alias("category"),
        F.col("pc.subcat").alias("subcategory"),
        F.col("pc.maintenance").alias("maintenance"),
        F.col("pn.prd_cost").alias("cost"),
        F.col("pn.prd_line").alias("product_line"),
        F.col("pn.prd_start_dt").alias("start_date"),
    )
    return assign_surrogate_keys(dim, "product_key", order_by=["start_date", "product_number"])


def build_fact_sales(
    sales: DataFrame,
    dim_products: DataFrame,
    dim_customers: DataFrame,
) -> DataFrame:
    """
    Build gold.fact_sales.

    Args:
        sales: silver.crm_sales_details
        dim_products: gold.dim_products
        dim_customers: gold.dim_customers

    Returns:
        One row per sales line with product_key / customer_key resolved
        (null when the natural key has no dimension row)
    """
    sd = sales.alias("sd")
    pr = dim_products.select("product_key", "product_number").alias("pr")
    cu = dim_customers.select("customer_key", "customer_id").alias("cu")

    joined = (
        sd.join(pr, F.col("sd.sls_prd_key") == F.col("pr.product_number"), "left")
        .join(cu, F.col("sd.sls_cust_id") == F.col("cu.customer_id"), "left")
    )
    return joined.select(
        F.col("sd.sls_ord_num").alias("order_number"),
        F.col("pr.product_key"),
        F.col("cu.customer_key"),
        F.col("sd.sls_order_dt").alias("order_date"),
        F.col("sd.sls_ship_dt").alias("shipping_date"),
        F.col("sd.sls_due_dt").alias("due_date"),
        F.col("sd.sls_sales").alias("sales_amount"),
        F.col("sd.sls_quantity").alias("quantity"),
        F.col("sd.sls_price").alias("price"),
    )
