"""
Schema management operations for the generation arena.

Creates the arena tables (rows, generation registry, current pointers) and
builds the typed read-only views that expose each published relation as
``<layer>.<entity>``.
"""

from psycopg import sql
from pyspark.sql.types import (
    BooleanType,
    DataType,
    DateType,
    DecimalType,
    DoubleType,
    FloatType,
    IntegerType,
    LongType,
    ShortType,
    StringType,
    StructType,
    TimestampType,
)

from medallion_dw.core.schema import Layer, TableRef
from medallion_dw.utils.validation import sanitize_sql_identifier

from .connection import DatabaseConnectionPool

ARENA_DDL = [
    """
    CREATE TABLE IF NOT EXISTS dw_generation (
        generation_id BIGSERIAL PRIMARY KEY,
        layer TEXT NOT NULL,
        entity TEXT NOT NULL,
        run_id TEXT NOT NULL,
        row_count INTEGER NOT NULL DEFAULT 0,
        fingerprint TEXT NOT NULL,
        schema_json JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        published_at TIMESTAMPTZ
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dw_row (
        generation_id BIGINT NOT NULL REFERENCES dw_generation (generation_id) ON DELETE CASCADE,
        row_seq INTEGER NOT NULL,
        checksum CHAR(32) NOT NULL,
        data JSONB NOT NULL,
        PRIMARY KEY (generation_id, row_seq)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dw_current (
        layer TEXT NOT NULL,
        entity TEXT NOT NULL,
        generation_id BIGINT NOT NULL REFERENCES dw_generation (generation_id),
        previous_generation_id BIGINT REFERENCES dw_generation (generation_id),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (layer, entity)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_dw_generation_table ON dw_generation (layer, entity)",
]

_SIMPLE_TYPES = {
    StringType: "text",
    IntegerType: "integer",
    ShortType: "smallint",
    LongType: "bigint",
    DoubleType: "double precision",
    FloatType: "real",
    BooleanType: "boolean",
    DateType: "date",
    TimestampType: "timestamp",
}


def postgres_type(data_type: DataType) -> str:
    """
    Map a Spark SQL type to the PostgreSQL type used in the typed views.

    Unmapped types are exposed as text.
    """
    if isinstance(data_type, DecimalType):
        return f"numeric({data_type.precision},{data_type.scale})"
    for spark_type, pg_type in _SIMPLE_TYPES.items():
        if isinstance(data_type, spark_type):
            return pg_type
    return "text"


def view_statements(table: TableRef, schema: StructType) -> list[sql.Composed]:
    """
    Build the statements that (re)create the typed view for a relation.

    The view selects the rows of whatever generation the current pointer
    names, so it follows publish and rollback without being rebuilt; it is
    rebuilt anyway so column changes take effect.

    Args:
        table: Relation the view exposes
        schema: Spark schema of the rows

    Returns:
        DROP VIEW and CREATE VIEW statements, to run in one transaction
    """
    layer = sanitize_sql_identifier(table.layer.value, "layer")
    entity = sanitize_sql_identifier(table.entity, "entity")

    columns = [
        sql.SQL("(r.data ->> {key})::{pg_type} AS {column}").format(
            key=sql.Literal(field.name),
            pg_type=sql.SQL(postgres_type(field.dataType)),
            column=sql.Identifier(sanitize_sql_identifier(field.name, "column")),
        )
        for field in schema.fields
    ]
    view = sql.Identifier(layer, entity)

    return [
        sql.SQL("DROP VIEW IF EXISTS {view}").format(view=view),
        sql.SQL(
            "CREATE VIEW {view} AS SELECT {columns} FROM dw_row r "
            "JOIN dw_current c ON c.generation_id = r.generation_id "
            "WHERE c.layer = {layer} AND c.entity = {entity}"
        ).format(
            view=view,
            columns=sql.SQL(", ").join(columns),
            layer=sql.Literal(layer),
            entity=sql.Literal(entity),
        ),
    ]


class SchemaManager:
    """
    Creates and maintains the arena schema.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize schema manager.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def initialize(self) -> None:
        """Create the arena tables and the layer schemas if they do not exist."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                for statement in ARENA_DDL:
                    cur.execute(statement)
                for layer in (Layer.SILVER, Layer.GOLD):
                    cur.execute(
                        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(layer.value))
                    )

    def drop_all(self) -> None:
        """Drop the layer schemas and the arena tables (tests and resets)."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                for layer in (Layer.SILVER, Layer.GOLD):
                    cur.execute(
                        sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(layer.value))
                    )
                cur.execute("DROP TABLE IF EXISTS dw_current, dw_row, dw_generation CASCADE")
