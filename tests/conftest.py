"""
Pytest configuration and fixtures for medallion-dw tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Generator

import pytest
from pyspark.sql import DataFrame, SparkSession
from testcontainers.postgres import PostgresContainer

from medallion_dw.core.schema import RAW_SCHEMAS


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# SPARK FIXTURES
# =======================

@pytest.fixture(scope="session")
def spark_session() -> Generator[SparkSession, None, None]:
    """
    Create a Spark session for testing with local mode

    Yields:
        SparkSession configured like the batch CLI (ANSI off, UTC)
    """
    spark = (
        SparkSession.builder
        .appName("medallion-dw-test")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.sql.adaptive.enabled", "true")
        .config("spark.sql.ansi.enabled", "false")
        .config("spark.sql.session.timeZone", "UTC")
        .config("spark.driver.memory", "1g")
        .config("spark.ui.enabled", "false")  # Disable UI for tests
        .config("spark.sql.warehouse.dir", "/tmp/spark-warehouse")
        .getOrCreate()
    )

    # Set log level to WARN to reduce test output noise
    spark.sparkContext.setLogLevel("WARN")

    yield spark

    spark.stop()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_datawarehouse"
    ) as postgres:
        postgres.get_connection_url()
        yield postgres


@pytest.fixture(scope="function")
def db_pool(postgres_container):
    """
    Provide an open connection pool on a freshly initialized arena schema

    Args:
        postgres_container: PostgreSQL container fixture

    Yields:
        DatabaseConnectionPool
    """
    from medallion_dw.warehouse.connection import DatabaseConnectionPool
    from medallion_dw.warehouse.schema_mgmt import SchemaManager

    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_datawarehouse",
        user="test_pipeline",
        password="test_password",
    )
    pool.open()
    manager = SchemaManager(pool)
    manager.drop_all()
    manager.initialize()

    yield pool

    pool.close()


# =======================
# RAW DATA FIXTURES
# =======================

@pytest.fixture(scope="session")
def processing_time() -> datetime:
    """Fixed processing time used as the run clock in tests"""
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def make_raw(spark_session) -> Callable[[str, list], DataFrame]:
    """
    Build a raw DataFrame for an entity from tuples in schema order

    Returns:
        Function (entity, rows) -> DataFrame
    """
    def _make(entity: str, rows: list) -> DataFrame:
        return spark_session.createDataFrame(rows, schema=RAW_SCHEMAS[entity])

    return _make


# Customers 11000-11002; 11002 arrives twice and once without an id.
RAW_CUSTOMERS = [
    (11000, "AW00011000", " Jon", "Yang ", "M", "M", date(2025, 10, 6)),
    (11001, "AW00011001", "Eugene", "Huang", "S", "M", date(2025, 10, 6)),
    (11002, "AW00011002", "Ruben", "Torres", "M", "M", date(2024, 1, 1)),
    (11002, "AW00011002", "Ruben", "Torres", "M", None, date(2025, 10, 6)),
    (None, "AW00099999", "Ghost", "Row", "S", "F", date(2025, 10, 6)),
]

# Three current products; the helmet has an older version.
RAW_PRODUCTS = [
    (210, "CO-RF-FR-R92B-58", "HL Road Frame - Black- 58", None, "R ", date(2003, 7, 1), None),
    (211, "CO-RF-FR-R92R-58", "HL Road Frame - Red- 58", Decimal("1431.00"), "R", date(2003, 7, 1), None),
    (212, "AC-HE-HL-U509-R", "Sport-100 Helmet- Red", Decimal("12.00"), "S", date(2011, 7, 1), date(2007, 12, 28)),
    (213, "AC-HE-HL-U509-R", "Sport-100 Helmet- Red", Decimal("14.00"), "S", date(2012, 7, 1), None),
]

RAW_SALES = [
    ("SO43697", "FR-R92R-58", 11000, 20101229, 20110105, 20110110, Decimal("3578.00"), 1, Decimal("3578.00")),
    ("SO43698", "HL-U509-R", 11001, 20101229, 20110105, 20110110, Decimal("0.00"), 2, Decimal("14.00")),
    ("SO43699", "FR-R92B-58", 11002, 0, 20110105, 20110110, Decimal("50.00"), 5, None),
]

RAW_ERP_CUSTOMERS = [
    ("NASAW00011000", date(1971, 10, 6), "Male"),
    ("AW00011001", date(1976, 5, 10), " M"),
    ("NASAW00011002", date(2999, 1, 1), "F"),
]

RAW_LOCATIONS = [
    ("AW-00011000", "DE"),
    ("AW-00011001", "USA"),
    ("AW-00011002", " "),
]

RAW_CATEGORIES = [
    ("CO_RF", "Components", "Road Frames", "Yes"),
    ("AC_HE", "Accessories", "Helmets", "No"),
]


@pytest.fixture
def raw_rows() -> dict[str, list]:
    """Raw rows per entity; tests may modify the lists before building frames"""
    return {
        "crm_cust_info": list(RAW_CUSTOMERS),
        "crm_prd_info": list(RAW_PRODUCTS),
        "crm_sales_details": list(RAW_SALES),
        "erp_cust_az12": list(RAW_ERP_CUSTOMERS),
        "erp_loc_a101": list(RAW_LOCATIONS),
        "erp_px_cat_g1v2": list(RAW_CATEGORIES),
    }


@pytest.fixture
def raw_frames(make_raw, raw_rows) -> dict[str, DataFrame]:
    """Raw DataFrames for every source entity"""
    return {entity: make_raw(entity, rows) for entity, rows in raw_rows.items()}


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session", autouse=True)
def test_env_vars():
    """
    Set test environment variables

    This fixture loads tests/fixtures/test.env when present
    """
    from dotenv import load_dotenv

    env_path = os.path.join(os.path.dirname(__file__), "fixtures", "test.env")

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
