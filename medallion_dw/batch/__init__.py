"""
Batch orchestration and raw feed readers.
"""

from .pipeline import BatchPipeline

__all__ = ["BatchPipeline"]
