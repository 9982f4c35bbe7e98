"""
Unit tests for the validation gate and check configuration.
"""

import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from medallion_dw.core.exceptions import ConfigurationError
from medallion_dw.core.rules import (
    DEFAULT_CHECKS_PATH,
    CheckConfigBuilder,
    CheckConfigLoader,
    ValidationGate,
)
from medallion_dw.transforms import (
    build_dim_customers,
    build_dim_products,
    build_fact_sales,
    conform,
)

AS_OF = date(2024, 6, 1)


def build_tables(raw_frames, processing_time):
    """Conform the raw frames and build the star schema, keyed by qualified name"""
    silver = {entity: conform(entity, raw, processing_time) for entity, raw in raw_frames.items()}
    customers = build_dim_customers(silver["crm_cust_info"], silver["erp_cust_az12"], silver["erp_loc_a101"])
    products = build_dim_products(silver["crm_prd_info"], silver["erp_px_cat_g1v2"])
    fact = build_fact_sales(silver["crm_sales_details"], products, customers)

    tables = {f"silver.{entity}": df for entity, df in silver.items()}
    tables.update({
        "gold.dim_customers": customers,
        "gold.dim_products": products,
        "gold.fact_sales": fact,
    })
    return tables


def write_yaml(content: str) -> Path:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(content)
        return Path(f.name)


@pytest.mark.unit
class TestValidationGate:
    """Tests for ValidationGate"""

    def test_default_battery_passes_clean_data(self, raw_frames, processing_time):
        """Test the packaged battery finds no blocking failure in the sample data"""
        gate = ValidationGate.default()

        report = gate.run(build_tables(raw_frames, processing_time), as_of=AS_OF)

        assert report.passed
        assert report.blocking_failures == []
        assert len(report.results) == len(gate.checks)

    def test_orphan_product_blocks(self, raw_frames, raw_rows, make_raw, processing_time):
        """Test a sales line with an unknown product fails the product reference check"""
        raw_rows["crm_sales_details"].append(
            ("SO99999", "ZZ-UNKNOWN", 11000, 20110101, 20110105, 20110110, Decimal("10.00"), 1, Decimal("10.00"))
        )
        raw_frames["crm_sales_details"] = make_raw("crm_sales_details", raw_rows["crm_sales_details"])

        report = ValidationGate.default().run(build_tables(raw_frames, processing_time), as_of=AS_OF)

        result = report.get("fact_sales_product_reference")
        assert not report.passed
        assert result.blocking
        assert result.offending_count == 1
        assert result.offending_keys == [
            {"order_number": "SO99999", "product_key": None, "customer_key": 1}
        ]
        assert report.get("fact_sales_customer_reference").passed

    def test_duplicate_erp_customer_blocks(self, raw_frames, raw_rows, make_raw, processing_time):
        """Test a repeated ERP customer id that fans out the customer dimension is blocking"""
        raw_rows["erp_cust_az12"].append(("AW00011000", date(1971, 10, 6), "Male"))
        raw_frames["erp_cust_az12"] = make_raw("erp_cust_az12", raw_rows["erp_cust_az12"])
        tables = build_tables(raw_frames, processing_time)

        report = ValidationGate.default().run(tables, as_of=AS_OF)

        assert tables["gold.dim_customers"].count() == 4
        assert not report.passed
        result = report.get("dim_customers_unique_customer_id")
        assert result.blocking
        assert result.offending_keys == [{"customer_id": 11000}]
        assert report.get("dim_customers_unique_key").passed

    def test_duplicate_category_blocks(self, raw_frames, raw_rows, make_raw, processing_time):
        """Test a repeated category id that fans out the product dimension is blocking"""
        raw_rows["erp_px_cat_g1v2"].append(("AC_HE", "Accessories", "Helmets", "No"))
        raw_frames["erp_px_cat_g1v2"] = make_raw("erp_px_cat_g1v2", raw_rows["erp_px_cat_g1v2"])

        report = ValidationGate.default().run(build_tables(raw_frames, processing_time), as_of=AS_OF)

        result = report.get("dim_products_unique_product_number")
        assert result in report.blocking_failures
        assert result.offending_keys == [{"product_number": "HL-U509-R"}]

    def test_warning_does_not_block(self, raw_frames, raw_rows, make_raw, processing_time):
        """Test advisory checks are reported without blocking"""
        raw_rows["erp_px_cat_g1v2"].append(("AC_BK", "Accessories", "Bike Racks", "Sometimes"))
        raw_frames["erp_px_cat_g1v2"] = make_raw("erp_px_cat_g1v2", raw_rows["erp_px_cat_g1v2"])

        report = ValidationGate.default().run(build_tables(raw_frames, processing_time), as_of=AS_OF)

        assert report.passed
        assert [r.check_name for r in report.warnings] == ["erp_px_cat_g1v2_maintenance_domain"]
        assert report.summary()["warnings"] == 1

    def test_missing_tables_skipped(self, raw_frames, processing_time):
        """Test checks on tables that are not supplied are skipped"""
        tables = build_tables(raw_frames, processing_time)
        silver_only = {name: df for name, df in tables.items() if name.startswith("silver.")}

        report = ValidationGate.default().run(silver_only, as_of=AS_OF)

        assert report.results
        assert all(r.table.startswith("silver.") for r in report.results)

    def test_disabled_checks_skipped(self):
        """Test that disabled checks are not built"""
        checks = CheckConfigBuilder() \
            .add_unique_key("gold.dim_customers", ["customer_key"]) \
            .build()
        checks[0]["enabled"] = False

        assert ValidationGate(checks).checks == []

    def test_unknown_check_type(self):
        """Test that an unknown check type raises ConfigurationError"""
        checks = CheckConfigBuilder().add("weird", "checksum", "gold.dim_customers").build()

        with pytest.raises(ConfigurationError) as exc_info:
            ValidationGate(checks)

        assert "unknown check type" in str(exc_info.value).lower()

    def test_invalid_table_name(self):
        """Test a check on a malformed table name is a configuration error"""
        checks = [{
            "check_name": "bad_table",
            "check_type": "not_null",
            "table": "dim_customers",
            "parameters": {"column": "customer_key"},
            "severity": "error",
        }]

        with pytest.raises(ConfigurationError, match="bad_table"):
            ValidationGate(checks)

    def test_get_check_summary(self):
        """Test check summary statistics"""
        checks = CheckConfigBuilder() \
            .add_unique_key("gold.dim_customers", ["customer_key"]) \
            .add_referential_integrity("gold.fact_sales", "customer_key", "gold.dim_customers") \
            .add_domain("silver.crm_cust_info", "cst_gndr", "gender") \
            .build()

        summary = ValidationGate(checks).get_check_summary()

        assert summary["total_checks"] == 3
        assert summary["checks_by_type"]["unique_key"] == 1
        assert summary["checks_by_severity"] == {"error": 2, "warning": 1}


@pytest.mark.unit
class TestCheckConfigLoader:
    """Tests for CheckConfigLoader"""

    def test_default_battery_loads(self):
        """Test the packaged YAML parses and names every check"""
        checks = CheckConfigLoader(DEFAULT_CHECKS_PATH).load_checks()

        names = [c["check_name"] for c in checks]
        assert len(names) == len(set(names))
        blocking = {c["check_name"] for c in checks if c["severity"] == "error"}
        assert blocking == {
            "dim_customers_unique_key",
            "dim_customers_unique_customer_id",
            "dim_products_unique_key",
            "dim_products_unique_product_number",
            "fact_sales_unique_line",
            "fact_sales_product_reference",
            "fact_sales_customer_reference",
            "fact_sales_measures",
        }

    def test_load_checks_from_yaml(self):
        """Test loading checks with default names and severities"""
        temp_path = write_yaml("""
checks:
  silver.crm_cust_info:
    - type: unique_key
      params:
        columns: [cst_id]
  gold.fact_sales:
    - name: fact_measures
      type: measure_consistency
      severity: error
      parameters:
        quantity: quantity
        price: price
        sales: sales_amount
""")

        try:
            checks = CheckConfigLoader(temp_path).load_checks()

            assert len(checks) == 2
            assert checks[0]["check_name"] == "silver_crm_cust_info_unique_key_0"
            assert checks[0]["severity"] == "warning"
            assert checks[1]["check_name"] == "fact_measures"
            assert checks[1]["parameters"]["sales"] == "sales_amount"
            assert checks[1]["enabled"] is True
        finally:
            temp_path.unlink()

    def test_file_not_found(self):
        """Test that a missing file raises ConfigurationError"""
        with pytest.raises(ConfigurationError):
            CheckConfigLoader("/nonexistent/path/checks.yaml")

    def test_missing_checks_section(self):
        """Test that YAML without a checks section is rejected"""
        temp_path = write_yaml("""
rules:
  - not a check battery
""")

        try:
            with pytest.raises(ConfigurationError) as exc_info:
                CheckConfigLoader(temp_path).load_checks()

            assert "checks" in str(exc_info.value).lower()
        finally:
            temp_path.unlink()

    def test_missing_type(self):
        """Test that a check missing 'type' is rejected"""
        temp_path = write_yaml("""
checks:
  silver.crm_cust_info:
    - params:
        columns: [cst_id]
""")

        try:
            with pytest.raises(ConfigurationError, match="type"):
                CheckConfigLoader(temp_path).load_checks()
        finally:
            temp_path.unlink()

    def test_invalid_severity(self):
        """Test that severities other than error/warning are rejected"""
        temp_path = write_yaml("""
checks:
  silver.crm_cust_info:
    - type: unique_key
      severity: fatal
      params:
        columns: [cst_id]
""")

        try:
            with pytest.raises(ConfigurationError, match="fatal"):
                CheckConfigLoader(temp_path).load_checks()
        finally:
            temp_path.unlink()

    def test_duplicate_names(self):
        """Test that duplicate check names are rejected"""
        temp_path = write_yaml("""
checks:
  silver.crm_cust_info:
    - name: same
      type: unique_key
      params:
        columns: [cst_id]
  silver.crm_prd_info:
    - name: same
      type: unique_key
      params:
        columns: [prd_id]
""")

        try:
            with pytest.raises(ConfigurationError, match="Duplicate check names: same"):
                CheckConfigLoader(temp_path).load_checks()
        finally:
            temp_path.unlink()

    def test_invalid_yaml(self):
        """Test that malformed YAML is a configuration error"""
        temp_path = write_yaml("checks: [unclosed\n")

        try:
            with pytest.raises(ConfigurationError, match="Invalid YAML"):
                CheckConfigLoader(temp_path).load_checks()
        finally:
            temp_path.unlink()


@pytest.mark.unit
class TestCheckConfigBuilder:
    """Tests for CheckConfigBuilder"""

    def test_builder_fluent_interface(self):
        """Test fluent interface for building checks"""
        checks = CheckConfigBuilder() \
            .add_unique_key("gold.dim_products", ["product_key"]) \
            .add_referential_integrity("gold.fact_sales", "product_key", "gold.dim_products") \
            .add_domain("silver.crm_prd_info", "prd_line", "product_line") \
            .add_measure_consistency("gold.fact_sales", "quantity", "price", "sales_amount") \
            .build()

        assert [c["check_name"] for c in checks] == [
            "dim_products_unique_product_key",
            "fact_sales_product_key_reference",
            "crm_prd_info_prd_line_domain",
            "fact_sales_measure_consistency",
        ]
        assert checks[1]["parameters"]["reference_column"] == "product_key"
        assert checks[0]["severity"] == "error"
        assert checks[2]["severity"] == "warning"

    def test_builder_rejects_bad_severity(self):
        """Test that the builder validates severity"""
        with pytest.raises(ConfigurationError):
            CheckConfigBuilder().add("x", "not_null", "gold.fact_sales", severity="critical", column="price")

    def test_built_checks_run(self, spark_session):
        """Test a built battery runs against ad-hoc tables"""
        dim = spark_session.createDataFrame([(1, 100), (1, 101)], "customer_key int, customer_id int")
        checks = CheckConfigBuilder().add_unique_key("gold.dim_customers", ["customer_key"]).build()

        report = ValidationGate(checks).run({"gold.dim_customers": dim}, as_of=AS_OF)

        assert not report.passed
        assert report.blocking_failures[0].offending_keys == [{"customer_key": 1}]
