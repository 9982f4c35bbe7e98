"""
Spark transforms for the silver and gold layers.
"""

from .conformance import CONFORMERS, LINEAGE_COLUMN, conform
from .reconciliation import reconcile_measures
from .star_schema import build_dim_customers, build_dim_products, build_fact_sales
from .surrogate_keys import assign_surrogate_keys
from .temporal import assign_validity_intervals, current_versions

__all__ = [
    "CONFORMERS",
    "LINEAGE_COLUMN",
    "conform",
    "reconcile_measures",
    "build_dim_customers",
    "build_dim_products",
    "build_fact_sales",
    "assign_surrogate_keys",
    "assign_validity_intervals",
    "current_versions",
]
