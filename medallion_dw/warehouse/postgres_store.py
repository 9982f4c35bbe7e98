"""
PostgreSQL layer store.

Rows live as JSONB in a single arena table keyed by generation id, each
with an MD5 checksum of its content. A pointer table names the current and
the previous generation of every relation; publishing swaps the pointers
and rebuilds the typed views in one transaction, so readers of
``silver.<entity>`` / ``gold.<entity>`` see either the old or the new rows
in full.
"""

import json
from contextlib import contextmanager
from typing import Sequence

import psycopg
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

from medallion_dw.core.exceptions import StoreError
from medallion_dw.core.models import Generation
from medallion_dw.core.schema import TableRef
from medallion_dw.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .schema_mgmt import view_statements
from .store import LayerStore, fingerprint_checksums, row_checksum, serialize_row

logger = get_logger(__name__)

# Matches TIMESTAMP_FORMAT used when serializing rows.
SPARK_TIMESTAMP_FORMAT = "yyyy-MM-dd'T'HH:mm:ss"

_GENERATION_COLUMNS = """
    g.generation_id, g.layer, g.entity, g.run_id, g.row_count,
    g.fingerprint, g.created_at, g.published_at
"""


def _to_generation(row: dict) -> Generation:
    return Generation(
        generation_id=str(row["generation_id"]),
        table=f"{row['layer']}.{row['entity']}",
        run_id=row["run_id"],
        row_count=row["row_count"],
        fingerprint=row["fingerprint"],
        created_at=row["created_at"],
        published_at=row["published_at"],
    )


def _ref(table: TableRef | str) -> TableRef:
    return table if isinstance(table, TableRef) else TableRef.parse(table)


@contextmanager
def _store_errors(operation: str):
    """Translate psycopg errors into StoreError carrying the SQLSTATE."""
    try:
        yield
    except psycopg.Error as e:
        raise StoreError(f"{operation} failed: {e}", code=e.sqlstate) from e


class PostgresLayerStore(LayerStore):
    """
    Generation-arena store on PostgreSQL.
    """

    def __init__(self, spark: SparkSession, pool: DatabaseConnectionPool, insert_batch_size: int = 5000):
        """
        Args:
            spark: Session used to turn stored rows back into DataFrames
            pool: Open connection pool
            insert_batch_size: Rows sent per executemany call
        """
        super().__init__(spark)
        self.pool = pool
        self.insert_batch_size = insert_batch_size

    def stage(self, table: TableRef | str, df: DataFrame, run_id: str) -> Generation:
        ref = _ref(table)
        rows = []
        checksums = []
        for row in df.toLocalIterator():
            values = row.asDict(recursive=True)
            checksum = row_checksum(values)
            checksums.append(checksum)
            rows.append((checksum, serialize_row(values)))

        with _store_errors(f"Staging {ref}"):
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO dw_generation (layer, entity, run_id, row_count, fingerprint, schema_json)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING generation_id, created_at
                        """,
                        (
                            ref.layer.value,
                            ref.entity,
                            run_id,
                            len(rows),
                            fingerprint_checksums(checksums),
                            df.schema.json(),
                        ),
                    )
                    created = cur.fetchone()
                    generation_id = created["generation_id"]

                    for start in range(0, len(rows), self.insert_batch_size):
                        batch = rows[start:start + self.insert_batch_size]
                        cur.executemany(
                            """
                            INSERT INTO dw_row (generation_id, row_seq, checksum, data)
                            VALUES (%s, %s, %s, %s)
                            """,
                            [
                                (generation_id, start + offset, checksum, data)
                                for offset, (checksum, data) in enumerate(batch)
                            ],
                        )

        generation = Generation(
            generation_id=str(generation_id),
            table=ref.qualified_name,
            run_id=run_id,
            row_count=len(rows),
            fingerprint=fingerprint_checksums(checksums),
            created_at=created["created_at"],
        )
        logger.debug(
            "Staged generation",
            extra={"table": generation.table, "generation_id": generation.generation_id, "row_count": len(rows)},
        )
        return generation

    def publish(self, generations: Sequence[Generation]) -> list[Generation]:
        tables = [g.table for g in generations]
        if len(set(tables)) != len(tables):
            raise StoreError("Cannot publish two generations of the same table at once")

        published = []
        with _store_errors("Publishing " + ", ".join(tables)):
            with self.pool.get_connection() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        for generation in generations:
                            published.append(self._publish_one(cur, generation))
        return published

    def _publish_one(self, cur: psycopg.Cursor, generation: Generation) -> Generation:
        ref = _ref(generation.table)
        cur.execute(
            """
            UPDATE dw_generation SET published_at = NOW()
            WHERE generation_id = %s AND layer = %s AND entity = %s AND published_at IS NULL
            RETURNING published_at, schema_json
            """,
            (int(generation.generation_id), ref.layer.value, ref.entity),
        )
        updated = cur.fetchone()
        if updated is None:
            # Raising inside the transaction block rolls back earlier pointer swaps.
            raise StoreError(f"Generation {generation.generation_id} of {ref} is not staged")

        cur.execute(
            """
            INSERT INTO dw_current (layer, entity, generation_id)
            VALUES (%s, %s, %s)
            ON CONFLICT (layer, entity) DO UPDATE SET
                previous_generation_id = dw_current.generation_id,
                generation_id = EXCLUDED.generation_id,
                updated_at = NOW()
            """,
            (ref.layer.value, ref.entity, int(generation.generation_id)),
        )
        self._rebuild_view(cur, ref, updated["schema_json"])
        self._prune(cur, ref)
        return generation.model_copy(update={"published_at": updated["published_at"]})

    def _rebuild_view(self, cur: psycopg.Cursor, ref: TableRef, schema_json) -> None:
        schema = StructType.fromJson(self._schema_dict(schema_json))
        for statement in view_statements(ref, schema):
            cur.execute(statement)

    @staticmethod
    def _schema_dict(schema_json) -> dict:
        return json.loads(schema_json) if isinstance(schema_json, str) else schema_json

    @staticmethod
    def _prune(cur: psycopg.Cursor, ref: TableRef) -> None:
        """Delete published generations that are neither current nor previous."""
        cur.execute(
            """
            DELETE FROM dw_generation g
            USING dw_current c
            WHERE c.layer = %s AND c.entity = %s
              AND g.layer = c.layer AND g.entity = c.entity
              AND g.published_at IS NOT NULL
              AND g.generation_id <> c.generation_id
              AND g.generation_id IS DISTINCT FROM c.previous_generation_id
            """,
            (ref.layer.value, ref.entity),
        )

    def discard(self, generation: Generation) -> None:
        with _store_errors(f"Discarding generation {generation.generation_id}"):
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "DELETE FROM dw_generation WHERE generation_id = %s AND published_at IS NULL",
                        (int(generation.generation_id),),
                    )
                    deleted = cur.rowcount
        if deleted == 0:
            raise StoreError(f"Generation {generation.generation_id} is not staged")

    def read_generation(self, generation: Generation) -> DataFrame:
        with _store_errors(f"Reading generation {generation.generation_id}"):
            with self.pool.get_cursor() as cur:
                cur.execute(
                    "SELECT schema_json FROM dw_generation WHERE generation_id = %s",
                    (int(generation.generation_id),),
                )
                registered = cur.fetchone()
                if registered is None:
                    raise StoreError(f"Unknown generation {generation.generation_id}")

                cur.execute(
                    "SELECT data::text AS data FROM dw_row WHERE generation_id = %s ORDER BY row_seq",
                    (int(generation.generation_id),),
                )
                lines = [row["data"] for row in cur.fetchall()]

        schema = StructType.fromJson(self._schema_dict(registered["schema_json"]))
        return (
            self.spark.read.schema(schema)
            .option("timestampFormat", SPARK_TIMESTAMP_FORMAT)
            .option("dateFormat", "yyyy-MM-dd")
            .json(self.spark.sparkContext.parallelize(lines))
        )

    def current_generation(self, table: TableRef | str) -> Generation | None:
        ref = _ref(table)
        with _store_errors(f"Looking up current generation of {ref}"):
            rows = self.pool.execute_query(
                f"""
                SELECT {_GENERATION_COLUMNS}
                FROM dw_current c
                JOIN dw_generation g ON g.generation_id = c.generation_id
                WHERE c.layer = %s AND c.entity = %s
                """,
                (ref.layer.value, ref.entity),
            )
        return _to_generation(rows[0]) if rows else None

    def rollback_all(self, tables: Sequence[TableRef | str]) -> list[Generation]:
        refs = [_ref(t) for t in tables]
        names = [ref.qualified_name for ref in refs]
        if len(set(names)) != len(names):
            raise StoreError("Cannot roll back the same table twice at once")

        restored = []
        with _store_errors("Rolling back " + ", ".join(names)):
            with self.pool.get_connection() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        # Lock and check every pointer before moving any of them.
                        missing = [ref.qualified_name for ref in refs if self._previous_id(cur, ref) is None]
                        if missing:
                            raise StoreError(f"No previous generation to roll back to for {', '.join(missing)}")
                        for ref in refs:
                            restored.append(self._rollback_one(cur, ref))

        for generation in restored:
            logger.info(
                "Rolled back relation",
                extra={"table": generation.table, "generation_id": generation.generation_id},
            )
        return restored

    @staticmethod
    def _previous_id(cur: psycopg.Cursor, ref: TableRef) -> int | None:
        cur.execute(
            """
            SELECT previous_generation_id FROM dw_current
            WHERE layer = %s AND entity = %s
            FOR UPDATE
            """,
            (ref.layer.value, ref.entity),
        )
        pointer = cur.fetchone()
        return pointer["previous_generation_id"] if pointer else None

    def _rollback_one(self, cur: psycopg.Cursor, ref: TableRef) -> Generation:
        cur.execute(
            """
            UPDATE dw_current
            SET generation_id = previous_generation_id,
                previous_generation_id = NULL,
                updated_at = NOW()
            WHERE layer = %s AND entity = %s
            RETURNING generation_id
            """,
            (ref.layer.value, ref.entity),
        )
        generation_id = cur.fetchone()["generation_id"]
        cur.execute(
            f"""
            SELECT {_GENERATION_COLUMNS}, g.schema_json
            FROM dw_generation g WHERE g.generation_id = %s
            """,
            (generation_id,),
        )
        restored = cur.fetchone()
        self._rebuild_view(cur, ref, restored["schema_json"])
        self._prune(cur, ref)
        return _to_generation(restored)

    def close(self) -> None:
        self.pool.close()
