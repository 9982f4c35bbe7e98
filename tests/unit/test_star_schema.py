"""
Unit tests for the gold star schema builders.
"""

from decimal import Decimal

import pytest

from medallion_dw.core.domains import NOT_AVAILABLE
from medallion_dw.transforms.conformance import conform
from medallion_dw.transforms.star_schema import (
    build_dim_customers,
    build_dim_products,
    build_fact_sales,
)


@pytest.fixture
def silver(raw_frames, processing_time):
    """Conformed silver frames for the sample data"""
    return {entity: conform(entity, raw, processing_time) for entity, raw in raw_frames.items()}


@pytest.mark.unit
class TestDimCustomers:
    """Tests for gold.dim_customers"""

    def test_one_row_per_customer(self, silver):
        dim = build_dim_customers(silver["crm_cust_info"], silver["erp_cust_az12"], silver["erp_loc_a101"])

        rows = dim.orderBy("customer_key").collect()

        assert [(r.customer_key, r.customer_id) for r in rows] == [(1, 11000), (2, 11001), (3, 11002)]

    def test_enrichment(self, silver):
        dim = build_dim_customers(silver["crm_cust_info"], silver["erp_cust_az12"], silver["erp_loc_a101"])

        rows = {r.customer_id: r for r in dim.collect()}

        assert rows[11000].country == "Germany"
        assert rows[11000].first_name == "Jon"
        assert rows[11001].country == "United States"
        assert rows[11002].country == NOT_AVAILABLE
        assert rows[11002].birthdate is None

    def test_gender_falls_back_to_erp(self, silver):
        """CRM gender wins unless it is N/A; then the ERP value is used"""
        dim = build_dim_customers(silver["crm_cust_info"], silver["erp_cust_az12"], silver["erp_loc_a101"])

        rows = {r.customer_id: r.gender for r in dim.collect()}

        assert rows == {11000: "Male", 11001: "Male", 11002: "Female"}

    def test_unmatched_customer_gets_defaults(self, silver, make_raw, processing_time):
        erp = conform("erp_cust_az12", make_raw("erp_cust_az12", []), processing_time)
        locations = conform("erp_loc_a101", make_raw("erp_loc_a101", []), processing_time)

        rows = {r.customer_id: r for r in build_dim_customers(silver["crm_cust_info"], erp, locations).collect()}

        assert rows[11002].gender == NOT_AVAILABLE
        assert rows[11000].country == NOT_AVAILABLE


@pytest.mark.unit
class TestDimProducts:
    """Tests for gold.dim_products"""

    def test_only_current_versions(self, silver):
        dim = build_dim_products(silver["crm_prd_info"], silver["erp_px_cat_g1v2"])

        rows = dim.orderBy("product_key").collect()

        assert [r.product_id for r in rows] == [210, 211, 213]
        assert [r.product_key for r in rows] == [1, 2, 3]

    def test_category_enrichment(self, silver):
        dim = build_dim_products(silver["crm_prd_info"], silver["erp_px_cat_g1v2"])

        rows = {r.product_number: r for r in dim.collect()}

        assert rows["HL-U509-R"].category == "Accessories"
        assert rows["HL-U509-R"].subcategory == "Helmets"
        assert rows["HL-U509-R"].cost == Decimal("14")
        assert rows["FR-R92B-58"].maintenance == "Yes"
        assert rows["FR-R92B-58"].product_line == "Road"


@pytest.mark.unit
class TestFactSales:
    """Tests for gold.fact_sales"""

    def _build(self, silver):
        customers = build_dim_customers(silver["crm_cust_info"], silver["erp_cust_az12"], silver["erp_loc_a101"])
        products = build_dim_products(silver["crm_prd_info"], silver["erp_px_cat_g1v2"])
        return build_fact_sales(silver["crm_sales_details"], products, customers)

    def test_keys_resolved(self, silver):
        rows = {r.order_number: r for r in self._build(silver).collect()}

        assert len(rows) == 3
        assert (rows["SO43697"].product_key, rows["SO43697"].customer_key) == (2, 1)
        assert (rows["SO43698"].product_key, rows["SO43698"].customer_key) == (3, 2)
        assert (rows["SO43699"].product_key, rows["SO43699"].customer_key) == (1, 3)

    def test_measures_carried(self, silver):
        rows = {r.order_number: r for r in self._build(silver).collect()}

        assert rows["SO43698"].sales_amount == Decimal("28")
        assert rows["SO43698"].quantity == 2
        assert rows["SO43698"].price == Decimal("14")

    def test_unknown_product_keeps_null_key(self, silver, raw_rows, make_raw, processing_time):
        """Orphan lines stay in the fact with a null surrogate key"""
        raw_rows["crm_sales_details"].append(
            ("SO99999", "ZZ-UNKNOWN", 11000, 20110101, 20110105, 20110110, Decimal("10.00"), 1, Decimal("10.00"))
        )
        silver["crm_sales_details"] = conform(
            "crm_sales_details", make_raw("crm_sales_details", raw_rows["crm_sales_details"]), processing_time
        )

        rows = {r.order_number: r for r in self._build(silver).collect()}

        assert len(rows) == 4
        assert rows["SO99999"].product_key is None
        assert rows["SO99999"].customer_key == 1
