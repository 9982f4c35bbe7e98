"""
BatchRun model: the explicit per-run context threaded through the orchestrator.

Carries timing for the whole batch and for each entity, the validation
gate report and a structured error channel.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .check_result import GateReport


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchState(str, Enum):
    """Batch lifecycle: idle -> loading -> validating -> published | failed."""

    IDLE = "idle"
    LOADING = "loading"
    VALIDATING = "validating"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (BatchState.PUBLISHED, BatchState.FAILED)


class ErrorDetail(BaseModel):
    """
    Diagnostic detail for a failed run.

    Attributes:
        message: Error message
        code: SQLSTATE for database errors, otherwise an error code or class name
        state: Run state (and entity) at the time of failure
    """

    message: str
    code: str
    state: str


class EntityRun(BaseModel):
    """
    Timing and volume for one entity load within a run.

    Attributes:
        table: Qualified table name
        started_at: Load start
        finished_at: Load end (None while in flight)
        row_count: Rows written
        deduplicated: Raw rows dropped by deduplication
        generation_id: Store generation holding the rows
        published: Whether the generation became current
    """

    table: str
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    row_count: int = 0
    deduplicated: int = 0
    generation_id: Optional[str] = None
    published: bool = False

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds(), 3)


class BatchRun(BaseModel):
    """
    Context for one batch run.

    Attributes:
        run_id: Unique run identifier
        state: Current lifecycle state
        processing_time: Run timestamp used as lineage marker and as "now"
            for date sanitation
        started_at: Batch start
        finished_at: Batch end
        current_table: Table being processed, if any
        entities: Per-entity load records, in load order
        report: Validation gate report, once validation ran
        error: Error detail when the run failed on an exception
        failure_reason: Short reason for a failed run
    """

    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    state: BatchState = BatchState.IDLE
    processing_time: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    current_table: Optional[str] = None
    entities: List[EntityRun] = Field(default_factory=list)
    report: Optional[GateReport] = None
    error: Optional[ErrorDetail] = None
    failure_reason: Optional[str] = None

    def start(self) -> None:
        self.started_at = utcnow()
        self.state = BatchState.LOADING

    def begin_entity(self, table: str) -> EntityRun:
        """Record the start of an entity load and make it current."""
        self.current_table = table
        entity_run = EntityRun(table=table)
        self.entities.append(entity_run)
        return entity_run

    def end_entity(self, entity_run: EntityRun, row_count: int, generation_id: str | None) -> None:
        entity_run.finished_at = utcnow()
        entity_run.row_count = row_count
        entity_run.generation_id = generation_id
        self.current_table = None

    def begin_validation(self) -> None:
        self.state = BatchState.VALIDATING
        self.current_table = None

    def publish(self) -> None:
        self.state = BatchState.PUBLISHED
        self.finished_at = utcnow()

    def fail(self, reason: str, error: ErrorDetail | None = None) -> None:
        self.state = BatchState.FAILED
        self.failure_reason = reason
        self.error = error
        self.finished_at = utcnow()

    def describe_state(self) -> str:
        """State label used in error details, e.g. "loading:silver.crm_cust_info"."""
        if self.current_table:
            return f"{self.state.value}:{self.current_table}"
        return self.state.value

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds(), 3)

    def entity(self, table: str) -> EntityRun:
        """
        Find the load record for a table.

        Raises:
            KeyError: If the table was not loaded in this run
        """
        for entity_run in self.entities:
            if entity_run.table == table:
                return entity_run
        raise KeyError(table)
