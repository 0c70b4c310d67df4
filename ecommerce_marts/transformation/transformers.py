"""
Analytics Pipeline

Mart and report models, and the runner that executes the whole layered
pipeline in its fixed order:

    raw_* -> stg_* -> int_order_items -> int_customer_orders -> dim_customers
                                      -> fct_daily_sales -> rpt_sales_summary

Every run is a full refresh. Each model's output stays available on the
PipelineResult so data tests can inspect any layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import json

import polars as pl
import structlog

from ecommerce_marts.config import get_settings
from .cleaners import CURRENCY, DataCleaner, check_currency_range
from .enrichers import CUSTOMER_ORDER_COLUMNS, DataEnricher

logger = structlog.get_logger(__name__)
settings = get_settings()


SOURCE_TABLES = ["raw_customers", "raw_orders", "raw_products"]

DAILY_SALES_COLUMNS = [
    "order_date",
    "product_id",
    "product_name",
    "category",
    "order_count",
    "units_sold",
    "revenue",
    "cost",
    "margin",
]

SALES_SUMMARY_SCHEMA = {
    "total_revenue": CURRENCY,
    "total_units": pl.Int64,
    "total_margin": CURRENCY,
    "active_days": pl.Int64,
    "avg_revenue_per_unit": pl.Float64,
}


class CustomerSegment(str, Enum):
    """Customer value tiers"""
    HIGH_VALUE = "high_value"
    MEDIUM_VALUE = "medium_value"
    LOW_VALUE = "low_value"


def classify_segment(
    total_revenue: Union[Decimal, float, int],
    high_value_threshold: float = 300,
    medium_value_threshold: float = 100,
) -> CustomerSegment:
    """
    Classify lifetime revenue into a segment.

    Lower bounds are inclusive: [high, inf) -> high_value,
    [medium, high) -> medium_value, anything below -> low_value.
    """
    revenue = Decimal(str(total_revenue))
    if revenue >= Decimal(str(high_value_threshold)):
        return CustomerSegment.HIGH_VALUE
    if revenue >= Decimal(str(medium_value_threshold)):
        return CustomerSegment.MEDIUM_VALUE
    return CustomerSegment.LOW_VALUE


class MartBuilder:
    """
    Builds the published marts and the summary report.

    Example:
        marts = MartBuilder()
        dim = marts.build_customer_dimension(int_customer_orders)
        fct = marts.build_daily_sales(int_order_items)
        rpt = marts.build_sales_summary(fct)
    """

    def __init__(
        self,
        high_value_threshold: Optional[float] = None,
        medium_value_threshold: Optional[float] = None,
    ):
        self.high_value_threshold = (
            high_value_threshold
            if high_value_threshold is not None
            else settings.pipeline.high_value_threshold
        )
        self.medium_value_threshold = (
            medium_value_threshold
            if medium_value_threshold is not None
            else settings.pipeline.medium_value_threshold
        )
        if self.medium_value_threshold >= self.high_value_threshold:
            raise ValueError("medium_value_threshold must be lower than high_value_threshold")

    def build_customer_dimension(self, customer_orders_df: pl.DataFrame) -> pl.DataFrame:
        """Add customer_segment to int_customer_orders"""
        revenue = pl.col("total_revenue")
        high = pl.lit(Decimal(str(self.high_value_threshold)))
        medium = pl.lit(Decimal(str(self.medium_value_threshold)))

        dim = customer_orders_df.with_columns(
            pl.when(revenue >= high)
            .then(pl.lit(CustomerSegment.HIGH_VALUE.value))
            .when(revenue >= medium)
            .then(pl.lit(CustomerSegment.MEDIUM_VALUE.value))
            .otherwise(pl.lit(CustomerSegment.LOW_VALUE.value))
            .alias("customer_segment")
        ).select(CUSTOMER_ORDER_COLUMNS + ["customer_segment"])

        segment_counts = dict(
            dim.group_by("customer_segment").agg(pl.len().alias("n")).sort("customer_segment").iter_rows()
        )
        logger.info("Built customer dimension", model="dim_customers", rows=len(dim), segments=segment_counts)

        return dim

    def build_daily_sales(self, order_items_df: pl.DataFrame) -> pl.DataFrame:
        """One row per (order_date, product_id) with billable activity"""
        daily = order_items_df.group_by(
            ["order_date", "product_id", "product_name", "category"]
        ).agg([
            pl.col("order_id").n_unique().cast(pl.Int64).alias("order_count"),
            pl.col("quantity").sum().cast(pl.Int64).alias("units_sold"),
            pl.col("revenue").sum().alias("revenue"),
            pl.col("cost").sum().alias("cost"),
            pl.col("margin").sum().alias("margin"),
        ])
        daily = check_currency_range(
            daily, ["revenue", "cost", "margin"], "fct_daily_sales", ["order_date", "product_id"]
        )

        daily = daily.select(DAILY_SALES_COLUMNS).sort(["order_date", "product_id"])

        logger.info(
            "Built daily sales",
            model="fct_daily_sales",
            rows=len(daily),
            days=daily["order_date"].n_unique(),
        )

        return daily

    def build_sales_summary(self, daily_sales_df: pl.DataFrame) -> pl.DataFrame:
        """
        Collapse fct_daily_sales into a single KPI row.

        avg_revenue_per_unit is null when no units were sold.
        """
        zero = pl.lit(0).cast(CURRENCY)

        summary = daily_sales_df.select([
            pl.col("revenue").sum().fill_null(zero).alias("total_revenue"),
            pl.col("units_sold").sum().cast(pl.Int64).fill_null(0).alias("total_units"),
            pl.col("margin").sum().fill_null(zero).alias("total_margin"),
            pl.col("order_date").n_unique().cast(pl.Int64).alias("active_days"),
        ])
        summary = check_currency_range(summary, ["total_revenue", "total_margin"], "rpt_sales_summary")

        summary = summary.with_columns(
            pl.when(pl.col("total_units") > 0)
            .then(pl.col("total_revenue").cast(pl.Float64) / pl.col("total_units"))
            .otherwise(None)
            .cast(pl.Float64)
            .alias("avg_revenue_per_unit")
        )

        row = summary.row(0, named=True)
        logger.info(
            "Built sales summary",
            model="rpt_sales_summary",
            total_revenue=str(row["total_revenue"]),
            total_units=row["total_units"],
            active_days=row["active_days"],
        )

        return summary


class ModelLayer(str, Enum):
    """Layers of the transformation pipeline"""
    STAGING = "staging"
    INTERMEDIATE = "intermediate"
    MARTS = "marts"
    REPORTING = "reporting"


@dataclass(frozen=True)
class ModelNode:
    """A model in the fixed pipeline order"""
    name: str
    layer: ModelLayer
    depends_on: Tuple[str, ...]
    build: Callable[..., pl.DataFrame]
    published: bool = False


@dataclass
class ModelResult:
    """Result of building a single model"""
    name: str
    layer: ModelLayer
    input_rows: int
    output_rows: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float


@dataclass
class PipelineResult:
    """Every model built by a pipeline run"""
    models: Dict[str, pl.DataFrame]
    results: List[ModelResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def __getitem__(self, name: str) -> pl.DataFrame:
        return self.models[name]

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def result_for(self, name: str) -> Optional[ModelResult]:
        return next((r for r in self.results if r.name == name), None)


class AnalyticsPipeline:
    """
    Runs the layered models in their fixed order.

    Example:
        pipeline = AnalyticsPipeline()
        result = pipeline.run(load_seeds())
        result["dim_customers"]
        pipeline.write_outputs(result)
    """

    def __init__(
        self,
        output_path: Optional[Union[str, Path]] = None,
        output_format: Optional[str] = None,
        high_value_threshold: Optional[float] = None,
        medium_value_threshold: Optional[float] = None,
    ):
        self.output_path = Path(output_path or settings.pipeline.output_path)
        self.output_format = (output_format or settings.pipeline.output_format).lower()
        if self.output_format not in ("parquet", "csv"):
            raise ValueError(f"Unsupported output format: {self.output_format}")

        self.cleaner = DataCleaner()
        self.enricher = DataEnricher()
        self.marts = MartBuilder(high_value_threshold, medium_value_threshold)
        self.nodes = self._build_nodes()

    def _build_nodes(self) -> List[ModelNode]:
        """Models in execution order; each depends only on earlier entries"""
        nodes = [
            ModelNode("stg_customers", ModelLayer.STAGING, ("raw_customers",), self.cleaner.clean_customers),
            ModelNode("stg_orders", ModelLayer.STAGING, ("raw_orders",), self.cleaner.clean_orders),
            ModelNode("stg_products", ModelLayer.STAGING, ("raw_products",), self.cleaner.clean_products),
            ModelNode(
                "int_order_items",
                ModelLayer.INTERMEDIATE,
                ("stg_orders", "stg_products"),
                self.enricher.build_order_items,
            ),
            ModelNode(
                "int_customer_orders",
                ModelLayer.INTERMEDIATE,
                ("stg_customers", "int_order_items"),
                self.enricher.aggregate_customer_orders,
            ),
            ModelNode(
                "dim_customers",
                ModelLayer.MARTS,
                ("int_customer_orders",),
                self.marts.build_customer_dimension,
                published=True,
            ),
            ModelNode(
                "fct_daily_sales",
                ModelLayer.MARTS,
                ("int_order_items",),
                self.marts.build_daily_sales,
                published=True,
            ),
            ModelNode(
                "rpt_sales_summary",
                ModelLayer.REPORTING,
                ("fct_daily_sales",),
                self.marts.build_sales_summary,
                published=True,
            ),
        ]

        available = set(SOURCE_TABLES)
        for node in nodes:
            unknown = [dep for dep in node.depends_on if dep not in available]
            if unknown:
                raise ValueError(f"Model {node.name} runs before its dependencies: {unknown}")
            available.add(node.name)

        return nodes

    @property
    def model_names(self) -> List[str]:
        return [node.name for node in self.nodes]

    @property
    def published_models(self) -> List[str]:
        return [node.name for node in self.nodes if node.published]

    def run(self, raw_tables: Dict[str, pl.DataFrame]) -> PipelineResult:
        """
        Build every model from the raw tables.

        Args:
            raw_tables: raw_customers, raw_orders and raw_products

        Returns:
            PipelineResult holding every model

        Raises:
            DataCastError: A staging model met a value it cannot cast
        """
        missing = [table for table in SOURCE_TABLES if table not in raw_tables]
        if missing:
            raise ValueError(f"Missing source tables: {missing}")

        result = PipelineResult(models={name: raw_tables[name] for name in SOURCE_TABLES})
        logger.info("Starting pipeline run", models=len(self.nodes))

        for node in self.nodes:
            inputs = [result.models[dep] for dep in node.depends_on]
            started_at = datetime.utcnow()

            try:
                df = node.build(*inputs)
            except Exception as e:
                logger.error("Model build failed", model=node.name, error=str(e))
                raise

            completed_at = datetime.utcnow()
            result.models[node.name] = df
            result.results.append(ModelResult(
                name=node.name,
                layer=node.layer,
                input_rows=sum(len(i) for i in inputs),
                output_rows=len(df),
                started_at=started_at,
                completed_at=completed_at,
                duration_seconds=(completed_at - started_at).total_seconds(),
            ))

        result.completed_at = datetime.utcnow()
        logger.info(
            "Pipeline run complete",
            models=len(result.results),
            duration=f"{result.duration_seconds:.3f}s",
        )

        return result

    def _write_output(self, df: pl.DataFrame, name: str) -> str:
        """Write a model to the output directory, replacing any previous run"""
        output_file = self.output_path / f"{name}.{self.output_format}"

        if self.output_format == "csv":
            df.write_csv(output_file)
        else:
            df.write_parquet(output_file)
        logger.info(f"Written {len(df)} rows to {output_file}")

        return str(output_file)

    def write_outputs(self, result: PipelineResult) -> Dict[str, str]:
        """Persist the published models"""
        self.output_path.mkdir(parents=True, exist_ok=True)
        return {name: self._write_output(result[name], name) for name in self.published_models}

    def write_run_results(
        self,
        result: PipelineResult,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Write run metadata (timings, row counts, test outcomes) as JSON"""
        self.output_path.mkdir(parents=True, exist_ok=True)
        output_file = self.output_path / "run_results.json"

        payload = {
            "started_at": result.started_at.isoformat(),
            "completed_at": result.completed_at.isoformat() if result.completed_at else None,
            "duration_seconds": result.duration_seconds,
            "models": [
                {
                    "name": r.name,
                    "layer": r.layer.value,
                    "input_rows": r.input_rows,
                    "output_rows": r.output_rows,
                    "duration_seconds": r.duration_seconds,
                }
                for r in result.results
            ],
        }
        if extra:
            payload.update(extra)

        output_file.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        return str(output_file)


def run_pipeline(
    raw_tables: Dict[str, pl.DataFrame],
    **kwargs: Any,
) -> PipelineResult:
    """
    Convenience function to build every model in memory.

    Args:
        raw_tables: raw_customers, raw_orders and raw_products
        **kwargs: AnalyticsPipeline options

    Returns:
        PipelineResult
    """
    return AnalyticsPipeline(**kwargs).run(raw_tables)
