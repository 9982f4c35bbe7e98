"""
Raw sources: where the orchestrator gets each entity's raw DataFrame from.
"""

from pathlib import Path
from typing import Mapping, Protocol

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F

from medallion_dw.core.exceptions import SourceError
from medallion_dw.core.schema import INGEST_SEQ_COLUMN, RAW_SCHEMAS, get_entity
from medallion_dw.observability.logger import get_logger

from .feed_reader import FeedReader

logger = get_logger(__name__)


class RawSource(Protocol):
    """Supplies one raw DataFrame per source entity."""

    def read(self, entity: str) -> DataFrame:
        ...


class InMemoryRawSource:
    """
    Raw source over DataFrames that are already loaded.

    Args:
        frames: Mapping of entity name to raw DataFrame
    """

    def __init__(self, frames: Mapping[str, DataFrame]):
        self.frames = dict(frames)

    def read(self, entity: str) -> DataFrame:
        try:
            return self.frames[entity]
        except KeyError:
            raise SourceError(f"No raw data supplied for entity: {entity}") from None


class FileRawSource:
    """
    Raw source reading each entity's feed file below an input directory.

    The file location comes from the entity registry; the schema from the
    raw schema catalogue. An arrival-order column is added in file order.
    """

    def __init__(self, spark: SparkSession, input_dir: str | Path, file_format: str = "csv"):
        """
        Args:
            spark: Active Spark session
            input_dir: Directory holding source_crm/ and source_erp/
            file_format: Format of the feed files
        """
        self.input_dir = Path(input_dir)
        self.file_format = file_format
        self.reader = FeedReader(spark)

    def path_for(self, entity: str) -> Path:
        definition = get_entity(entity)
        if definition.source_path is None:
            raise SourceError(f"Entity {entity} has no raw feed")
        path = self.input_dir / definition.source_path
        if self.file_format != "csv":
            path = path.with_suffix(f".{self.file_format}")
        return path

    def read(self, entity: str) -> DataFrame:
        """
        Read an entity's raw feed.

        Raises:
            SourceError: If the feed file does not exist or cannot be read
        """
        path = self.path_for(entity)
        if not path.exists():
            raise SourceError(f"Raw feed for {entity} not found: {path}")

        try:
            df = self.reader.read(str(path), file_format=self.file_format, schema=RAW_SCHEMAS[entity])
        except SourceError:
            raise
        except Exception as e:
            raise SourceError(f"Failed to read raw feed for {entity} from {path}: {e}") from e

        logger.debug("Opened raw feed", extra={"entity": entity, "path": str(path)})
        return df.withColumn(INGEST_SEQ_COLUMN, F.monotonically_increasing_id())
