"""
medallion-dw: raw -> silver -> gold warehouse batch on Spark.
"""

__version__ = "0.1.0"
