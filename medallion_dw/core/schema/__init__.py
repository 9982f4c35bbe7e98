"""
Schemas and entity registry for the warehouse layers.
"""

from .entities import (
    ENTITIES,
    GOLD_BUILD_ORDER,
    SILVER_LOAD_ORDER,
    EntityDefinition,
    Layer,
    TableRef,
    get_entity,
)
from .raw import INGEST_SEQ_COLUMN, MEASURE_TYPE, RAW_SCHEMAS

__all__ = [
    "ENTITIES",
    "GOLD_BUILD_ORDER",
    "SILVER_LOAD_ORDER",
    "EntityDefinition",
    "Layer",
    "TableRef",
    "get_entity",
    "INGEST_SEQ_COLUMN",
    "MEASURE_TYPE",
    "RAW_SCHEMAS",
]
