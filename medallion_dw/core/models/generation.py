"""
Generation model: one immutable snapshot of a relation in the store.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .batch_run import utcnow


class Generation(BaseModel):
    """
    A full set of rows written for one table by one run.

    A relation's readers always see exactly one generation (the current
    one); new generations become visible only when published.

    Attributes:
        generation_id: Store-assigned identifier
        table: Qualified table name
        run_id: Run that wrote the rows
        row_count: Number of rows
        fingerprint: Digest over the row checksums, stable across runs with
            identical content
        created_at: When the rows were staged
        published_at: When the generation became current (None while staged)
    """

    generation_id: str
    table: str
    run_id: str
    row_count: int = Field(0, ge=0)
    fingerprint: str
    created_at: datetime = Field(default_factory=utcnow)
    published_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "generation_id": "42",
                "table": "gold.dim_customers",
                "run_id": "5f0c2d8e9a7b4e1c8d3f6a2b1c0e9d8f",
                "row_count": 18484,
                "fingerprint": "9b2f6f0e5c1d...",
            }
        }
