"""
Generation-arena layer store.

Every (layer, entity) relation is a series of generations: full row sets
written by one run. Writing stages a new generation that readers cannot see;
publishing moves the relation's current pointer to it. Only the current and
the previously published generation are retained, so a relation can be
rolled back one step.
"""

import hashlib
import itertools
import json
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Sequence

from pyspark.sql import DataFrame, SparkSession

from medallion_dw.core.exceptions import StoreError
from medallion_dw.core.models import Generation
from medallion_dw.core.models.batch_run import utcnow
from medallion_dw.core.schema import ENTITIES, Layer, TableRef
from medallion_dw.observability.logger import get_logger
from medallion_dw.transforms.cleaning import LINEAGE_COLUMN

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_row(row: dict[str, Any]) -> str:
    """Serialize a row to canonical JSON (sorted keys, ISO dates)."""
    return json.dumps(row, sort_keys=True, default=_json_default)


def row_checksum(row: dict[str, Any], exclude: Iterable[str] = (LINEAGE_COLUMN,)) -> str:
    """
    Calculate MD5 checksum of a row's content.

    The lineage timestamp is excluded so unchanged input yields identical
    checksums across runs.
    """
    excluded = set(exclude)
    content = {k: v for k, v in row.items() if k not in excluded}
    return hashlib.md5(serialize_row(content).encode()).hexdigest()


def fingerprint_checksums(checksums: Iterable[str]) -> str:
    """Order-independent digest over a set of row checksums."""
    return hashlib.md5("\n".join(sorted(checksums)).encode()).hexdigest()


def _table_name(table: TableRef | str) -> str:
    return table.qualified_name if isinstance(table, TableRef) else TableRef.parse(table).qualified_name


class LayerStore(ABC):
    """
    Abstract store for silver and gold relations.

    Implementations must make publish() atomic across all generations
    passed to one call.
    """

    def __init__(self, spark: SparkSession):
        self.spark = spark

    @abstractmethod
    def stage(self, table: TableRef | str, df: DataFrame, run_id: str) -> Generation:
        """
        Write a DataFrame as a new, unpublished generation.

        Args:
            table: Target relation
            df: Rows to write
            run_id: Run writing the rows

        Returns:
            The staged Generation
        """

    @abstractmethod
    def publish(self, generations: Sequence[Generation]) -> list[Generation]:
        """
        Make staged generations current, all or none.

        Returns:
            The published generations

        Raises:
            StoreError: If any generation is unknown or already published
        """

    @abstractmethod
    def discard(self, generation: Generation) -> None:
        """
        Delete a staged generation.

        Raises:
            StoreError: If the generation is unknown or already published
        """

    @abstractmethod
    def read_generation(self, generation: Generation) -> DataFrame:
        """Read the rows of a specific generation, published or not."""

    @abstractmethod
    def current_generation(self, table: TableRef | str) -> Generation | None:
        """Return the current generation of a relation, or None if never published."""

    @abstractmethod
    def rollback_all(self, tables: Sequence[TableRef | str]) -> list[Generation]:
        """
        Point relations back at their previously published generations, all or none.

        Returns:
            The generations that are current after the rollback

        Raises:
            StoreError: If a table is named twice or any relation has no
                previous generation (no pointer is moved)
        """

    def rollback(self, table: TableRef | str) -> Generation:
        """Roll back a single relation (see rollback_all)."""
        return self.rollback_all([table])[0]

    def replace(self, table: TableRef | str, df: DataFrame, run_id: str) -> Generation:
        """Stage and publish in one step (full replace of the relation)."""
        generation = self.stage(table, df, run_id)
        return self.publish([generation])[0]

    def read(self, table: TableRef | str) -> DataFrame:
        """
        Read the current rows of a relation.

        Raises:
            StoreError: If the relation has never been published
        """
        generation = self.current_generation(table)
        if generation is None:
            raise StoreError(f"No published generation for {_table_name(table)}")
        return self.read_generation(generation)

    def fingerprint(self, table: TableRef | str) -> str | None:
        """Content fingerprint of the current generation (None if unpublished)."""
        generation = self.current_generation(table)
        return generation.fingerprint if generation else None

    def read_layer(self, layer: Layer) -> dict[str, DataFrame]:
        """Read every published relation of a layer, keyed by qualified name."""
        tables = {}
        for entity in ENTITIES.values():
            if entity.layer != layer:
                continue
            name = entity.table.qualified_name
            if self.current_generation(name) is not None:
                tables[name] = self.read(name)
        return tables

    def close(self) -> None:
        """Release store resources."""


class InMemoryLayerStore(LayerStore):
    """
    Layer store over materialized in-memory DataFrames.

    Rows are collected to the driver on stage, so generations are immutable
    snapshots independent of their source plan. Suited to dry runs and tests.
    """

    def __init__(self, spark: SparkSession):
        super().__init__(spark)
        self._ids = itertools.count(1)
        self._generations: dict[str, Generation] = {}
        self._frames: dict[str, DataFrame] = {}
        self._current: dict[str, str] = {}
        self._previous: dict[str, str] = {}

    def stage(self, table: TableRef | str, df: DataFrame, run_id: str) -> Generation:
        name = _table_name(table)
        rows = df.collect()
        checksums = [row_checksum(row.asDict(recursive=True)) for row in rows]

        generation = Generation(
            generation_id=str(next(self._ids)),
            table=name,
            run_id=run_id,
            row_count=len(rows),
            fingerprint=fingerprint_checksums(checksums),
        )
        self._generations[generation.generation_id] = generation
        self._frames[generation.generation_id] = self.spark.createDataFrame(rows, schema=df.schema)

        logger.debug(
            "Staged generation",
            extra={"table": name, "generation_id": generation.generation_id, "row_count": len(rows)},
        )
        return generation

    def _staged(self, generation: Generation) -> Generation:
        stored = self._generations.get(generation.generation_id)
        if stored is None:
            raise StoreError(f"Unknown generation {generation.generation_id}")
        if stored.published_at is not None:
            raise StoreError(f"Generation {generation.generation_id} is already published")
        return stored

    def publish(self, generations: Sequence[Generation]) -> list[Generation]:
        # Validate everything before touching any pointer.
        staged = [self._staged(g) for g in generations]
        tables = [g.table for g in staged]
        if len(set(tables)) != len(tables):
            raise StoreError("Cannot publish two generations of the same table at once")

        published_at = utcnow()
        published = []
        for generation in staged:
            current = generation.model_copy(update={"published_at": published_at})
            self._generations[current.generation_id] = current

            previous_id = self._current.get(current.table)
            if previous_id is not None:
                self._previous[current.table] = previous_id
            self._current[current.table] = current.generation_id
            self._prune(current.table)
            published.append(current)
        return published

    def _prune(self, table: str) -> None:
        keep = {self._current.get(table), self._previous.get(table)}
        for generation_id, generation in list(self._generations.items()):
            if generation.table == table and generation.published_at is not None and generation_id not in keep:
                del self._generations[generation_id]
                del self._frames[generation_id]

    def discard(self, generation: Generation) -> None:
        staged = self._staged(generation)
        del self._generations[staged.generation_id]
        del self._frames[staged.generation_id]

    def read_generation(self, generation: Generation) -> DataFrame:
        try:
            return self._frames[generation.generation_id]
        except KeyError:
            raise StoreError(f"Unknown generation {generation.generation_id}") from None

    def current_generation(self, table: TableRef | str) -> Generation | None:
        generation_id = self._current.get(_table_name(table))
        return self._generations[generation_id] if generation_id else None

    def rollback_all(self, tables: Sequence[TableRef | str]) -> list[Generation]:
        names = [_table_name(t) for t in tables]
        if len(set(names)) != len(names):
            raise StoreError("Cannot roll back the same table twice at once")
        missing = [name for name in names if name not in self._previous]
        if missing:
            raise StoreError(f"No previous generation to roll back to for {', '.join(missing)}")

        restored = []
        for name in names:
            previous_id = self._previous.pop(name)
            self._current[name] = previous_id
            self._prune(name)
            logger.info("Rolled back relation", extra={"table": name, "generation_id": previous_id})
            restored.append(self._generations[previous_id])
        return restored
