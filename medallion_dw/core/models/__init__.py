"""
Core models for the warehouse pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .batch_run import BatchRun, BatchState, EntityRun, ErrorDetail
from .check_result import CheckResult, GateReport
from .generation import Generation

__all__ = [
    "BatchRun",
    "BatchState",
    "EntityRun",
    "ErrorDetail",
    "CheckResult",
    "GateReport",
    "Generation",
]
