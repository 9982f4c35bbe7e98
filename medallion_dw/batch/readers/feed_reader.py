"""
Typed readers for raw feed files.

Feeds are read against the entity's raw schema, never inferred. Cells that
do not parse as their declared type come out null and are left for
conformance and the validation gate.
"""

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

from medallion_dw.core.exceptions import SourceError

# Options for the headered, comma separated exports of the CRM and ERP systems.
CSV_FEED_OPTIONS = {
    "header": "true",
    "delimiter": ",",
    "dateFormat": "yyyy-MM-dd",
    "mode": "PERMISSIVE",
}


class FeedReader:
    """
    Reads one feed file into a DataFrame shaped like its raw schema.

    Supported formats are csv, json and parquet. Parquet carries its own
    types, so its columns are cast onto the raw schema after reading.
    """

    FORMATS = ("csv", "json", "parquet")

    def __init__(self, spark: SparkSession):
        self.spark = spark

    def read(self, path: str, file_format: str, schema: StructType) -> DataFrame:
        """
        Args:
            path: Feed file location
            file_format: One of FORMATS
            schema: Raw schema of the entity

        Raises:
            SourceError: If the format is not supported
        """
        file_format = file_format.lower()
        if file_format not in self.FORMATS:
            raise SourceError(f"Unsupported file format: {file_format}")
        return getattr(self, f"_read_{file_format}")(path, schema)

    def _read_csv(self, path: str, schema: StructType) -> DataFrame:
        return self.spark.read.schema(schema).options(**CSV_FEED_OPTIONS).csv(path)

    def _read_json(self, path: str, schema: StructType) -> DataFrame:
        return self.spark.read.schema(schema).option("mode", "PERMISSIVE").json(path)

    def _read_parquet(self, path: str, schema: StructType) -> DataFrame:
        df = self.spark.read.parquet(path)
        return df.select(*[df[field.name].cast(field.dataType).alias(field.name) for field in schema.fields])
