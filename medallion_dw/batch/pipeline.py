"""
Batch orchestration: raw -> silver -> gold -> validation gate -> publish.

Silver entities are replaced one at a time, each atomically. Gold entities
are staged as unpublished generations, validated together with silver, and
published in one atomic step only when no blocking check fails.
"""

from datetime import date, datetime
from typing import Callable, Mapping

from pyspark.sql import DataFrame, SparkSession

from medallion_dw.core.exceptions import StoreError, error_code
from medallion_dw.core.models import BatchRun, ErrorDetail, GateReport, Generation
from medallion_dw.core.models.batch_run import utcnow
from medallion_dw.core.rules import ValidationGate
from medallion_dw.core.schema import GOLD_BUILD_ORDER, SILVER_LOAD_ORDER, Layer, get_entity
from medallion_dw.observability.logger import get_logger, log_operation
from medallion_dw.observability.metrics import record_batch_run, record_entity_load
from medallion_dw.transforms import (
    build_dim_customers,
    build_dim_products,
    build_fact_sales,
    conform,
)
from medallion_dw.warehouse.store import LayerStore

from .readers import RawSource

logger = get_logger(__name__)

GoldBuilder = Callable[[Mapping[str, DataFrame]], DataFrame]

# Each builder receives every table built so far, keyed by qualified name.
GOLD_BUILDERS: dict[str, GoldBuilder] = {
    "dim_customers": lambda t: build_dim_customers(
        t["silver.crm_cust_info"], t["silver.erp_cust_az12"], t["silver.erp_loc_a101"]
    ),
    "dim_products": lambda t: build_dim_products(
        t["silver.crm_prd_info"], t["silver.erp_px_cat_g1v2"]
    ),
    "fact_sales": lambda t: build_fact_sales(
        t["silver.crm_sales_details"], t["gold.dim_products"], t["gold.dim_customers"]
    ),
}


class BatchPipeline:
    """
    Orchestrates a full batch run.

    Flow:
    1. Read, conform and replace each silver entity
    2. Build and stage the gold dimensions, then the fact
    3. Run the validation gate over silver and staged gold
    4. Publish staged gold atomically, or discard it on blocking failures
    """

    def __init__(
        self,
        spark: SparkSession,
        store: LayerStore,
        source: RawSource,
        gate: ValidationGate | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize batch pipeline.

        Args:
            spark: Active Spark session
            store: Store holding the silver and gold relations
            source: Supplier of raw entity DataFrames
            gate: Validation gate (defaults to the packaged check battery)
            clock: Source of the run's processing time
        """
        self.spark = spark
        self.store = store
        self.source = source
        self.gate = gate or ValidationGate.default()
        self.clock = clock

    def run(self) -> BatchRun:
        """
        Run the full transform batch.

        Never raises for pipeline failures: the returned BatchRun ends in
        PUBLISHED or FAILED, with error detail when an exception stopped it.

        Returns:
            The finished BatchRun
        """
        run = BatchRun(processing_time=self.clock())
        run.start()
        staged: list[Generation] = []

        logger.info(
            "Batch run started",
            extra={"run_id": run.run_id, "processing_time": run.processing_time.isoformat()},
        )

        try:
            tables = self._load_silver(run)
            tables.update(self._stage_gold(run, tables, staged))

            run.begin_validation()
            with log_operation("Validation gate", logger=logger, run_id=run.run_id):
                run.report = self.gate.run(tables, as_of=run.processing_time.date())

            if run.report.passed:
                self._publish_gold(run, staged)
                staged = []
                run.publish()
            else:
                failed = [r.check_name for r in run.report.blocking_failures]
                self._discard(staged)
                staged = []
                run.fail(f"Blocking checks failed: {', '.join(failed)}")
        except Exception as e:
            error = ErrorDetail(message=str(e), code=error_code(e), state=run.describe_state())
            self._discard(staged)
            run.fail(f"{type(e).__name__} during {error.state}", error)

        self._report(run)
        return run

    def validate(self, as_of: date | None = None) -> GateReport:
        """
        Run the validation gate over the currently published relations.

        Args:
            as_of: Date that "today" resolves to in date checks

        Returns:
            GateReport
        """
        tables = {**self.store.read_layer(Layer.SILVER), **self.store.read_layer(Layer.GOLD)}
        with log_operation("Validate published layers", logger=logger, tables=sorted(tables)):
            report = self.gate.run(tables, as_of=as_of)
        return report

    def _load_silver(self, run: BatchRun) -> dict[str, DataFrame]:
        tables = {}
        for entity in SILVER_LOAD_ORDER:
            definition = get_entity(entity)
            table = definition.table.qualified_name
            entity_run = run.begin_entity(table)

            with log_operation(f"Load {table}", logger=logger, run_id=run.run_id, table=table) as op:
                raw = self.source.read(entity)
                conformed = conform(entity, raw, run.processing_time)
                generation = self.store.replace(table, conformed, run.run_id)
                if definition.deduplicated:
                    entity_run.deduplicated = max(raw.count() - generation.row_count, 0)

            entity_run.published = True
            run.end_entity(entity_run, generation.row_count, generation.generation_id)
            record_entity_load(
                Layer.SILVER.value, entity, generation.row_count, op.duration_seconds, entity_run.deduplicated
            )
            # Later stages read the stored rows, not the conformance plan.
            tables[table] = self.store.read_generation(generation)
        return tables

    def _stage_gold(
        self,
        run: BatchRun,
        silver: Mapping[str, DataFrame],
        staged: list[Generation],
    ) -> dict[str, DataFrame]:
        tables = dict(silver)
        gold = {}
        for entity in GOLD_BUILD_ORDER:
            table = get_entity(entity).table.qualified_name
            entity_run = run.begin_entity(table)

            with log_operation(f"Build {table}", logger=logger, run_id=run.run_id, table=table) as op:
                generation = self.store.stage(table, GOLD_BUILDERS[entity](tables), run.run_id)
                staged.append(generation)

            run.end_entity(entity_run, generation.row_count, generation.generation_id)
            record_entity_load(Layer.GOLD.value, entity, generation.row_count, op.duration_seconds)
            tables[table] = gold[table] = self.store.read_generation(generation)
        return gold

    def _publish_gold(self, run: BatchRun, staged: list[Generation]) -> None:
        with log_operation("Publish gold", logger=logger, run_id=run.run_id):
            published = self.store.publish(staged)
        for generation in published:
            run.entity(generation.table).published = True

    def _discard(self, staged: list[Generation]) -> None:
        for generation in staged:
            try:
                self.store.discard(generation)
            except StoreError as e:
                logger.error(
                    "Failed to discard staged generation",
                    extra={"generation_id": generation.generation_id, "table": generation.table, "error": str(e)},
                )

    def _report(self, run: BatchRun) -> None:
        record_batch_run(run.state.value, run.duration_seconds)
        extra = {
            "run_id": run.run_id,
            "state": run.state.value,
            "duration_seconds": run.duration_seconds,
            "entities": [
                {"table": e.table, "rows": e.row_count, "duration_seconds": e.duration_seconds}
                for e in run.entities
            ],
        }
        if run.report is not None:
            extra["checks"] = run.report.summary()

        if run.error is not None:
            logger.error(
                f"Batch run failed: {run.failure_reason}",
                extra={
                    **extra,
                    "error_message": run.error.message,
                    "error_code": run.error.code,
                    "error_state": run.error.state,
                },
            )
        elif run.failure_reason:
            logger.error(f"Batch run failed: {run.failure_reason}", extra=extra)
        else:
            logger.info("Batch run published", extra=extra)
