"""
Business Rule Checks

Singular data tests: each rule is a query over one or more models that
returns the rows violating it. An empty result means the rule holds.
Violations are reported, never corrected.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Mapping, Optional, Tuple

import polars as pl
import structlog

from ecommerce_marts.transformation.cleaners import CURRENCY
from ecommerce_marts.transformation.enrichers import BILLABLE_STATUSES
from ecommerce_marts.transformation.transformers import classify_segment
from .validators import (
    ValidationCheck,
    ValidationResult,
    ValidationSeverity,
    failing_rows_check,
    summarize_checks,
)

logger = structlog.get_logger(__name__)


@dataclass
class RuleContext:
    """Run parameters the rules depend on"""
    as_of_date: date
    high_value_threshold: float = 300
    medium_value_threshold: float = 100


@dataclass(frozen=True)
class BusinessRule:
    """A named singular test over one or more models"""
    name: str
    description: str
    models: Tuple[str, ...]
    query: Callable[..., pl.DataFrame]
    severity: ValidationSeverity = ValidationSeverity.ERROR


def _positive_quantities(ctx: RuleContext, orders: pl.DataFrame) -> pl.DataFrame:
    return orders.filter(pl.col("quantity") <= 0)


def _no_future_orders(ctx: RuleContext, orders: pl.DataFrame) -> pl.DataFrame:
    return orders.filter(pl.col("order_date") > pl.lit(ctx.as_of_date))


def _revenue_matches_price(ctx: RuleContext, items: pl.DataFrame) -> pl.DataFrame:
    expected = (pl.col("quantity") * pl.col("unit_price")).cast(CURRENCY)
    return items.filter(pl.col("revenue") != expected)


def _margin_matches_cost(ctx: RuleContext, items: pl.DataFrame) -> pl.DataFrame:
    expected = (pl.col("revenue") - pl.col("cost")).cast(CURRENCY)
    return items.filter(pl.col("margin") != expected)


def _billable_items_only(ctx: RuleContext, items: pl.DataFrame) -> pl.DataFrame:
    return items.filter(~pl.col("status").is_in(BILLABLE_STATUSES))


def _daily_sales_units_reconcile(
    ctx: RuleContext,
    daily_sales: pl.DataFrame,
    items: pl.DataFrame,
) -> pl.DataFrame:
    units_sold = int(daily_sales["units_sold"].sum() or 0)
    quantity = int(items["quantity"].sum() or 0)
    mismatch = units_sold != quantity
    return pl.DataFrame(
        {
            "fct_units_sold": [units_sold] if mismatch else [],
            "order_items_quantity": [quantity] if mismatch else [],
        },
        schema={"fct_units_sold": pl.Int64, "order_items_quantity": pl.Int64},
    )


def _customer_dimension_complete(
    ctx: RuleContext,
    dim: pl.DataFrame,
    customers: pl.DataFrame,
) -> pl.DataFrame:
    return customers.join(dim.select("customer_id"), on="customer_id", how="anti")


def _inactive_customers_zeroed(ctx: RuleContext, dim: pl.DataFrame) -> pl.DataFrame:
    return dim.filter(
        (pl.col("order_count") == 0)
        & ((pl.col("total_revenue").cast(pl.Float64) != 0) | (pl.col("total_quantity") != 0))
    )


def _segment_matches_revenue(ctx: RuleContext, dim: pl.DataFrame) -> pl.DataFrame:
    expected = pl.col("total_revenue").map_elements(
        lambda revenue: classify_segment(
            revenue,
            ctx.high_value_threshold,
            ctx.medium_value_threshold,
        ).value,
        return_dtype=pl.Utf8,
    )
    return dim.filter(pl.col("customer_segment") != expected)


def _summary_average_guarded(ctx: RuleContext, summary: pl.DataFrame) -> pl.DataFrame:
    expected = pl.col("total_revenue").cast(pl.Float64) / pl.col("total_units")
    return summary.filter(
        ((pl.col("total_units") == 0) & pl.col("avg_revenue_per_unit").is_not_null())
        | (
            (pl.col("total_units") > 0)
            & (pl.col("avg_revenue_per_unit").is_null() | (pl.col("avg_revenue_per_unit") != expected))
        )
    )


def _summary_matches_daily_sales(
    ctx: RuleContext,
    summary: pl.DataFrame,
    daily_sales: pl.DataFrame,
) -> pl.DataFrame:
    totals = daily_sales.select([
        pl.col("revenue").sum().cast(CURRENCY).alias("fct_revenue"),
        pl.col("margin").sum().cast(CURRENCY).alias("fct_margin"),
    ])
    fct_revenue, fct_margin = totals.row(0)
    return summary.filter(
        (pl.col("total_revenue").cast(pl.Float64) != float(fct_revenue or 0))
        | (pl.col("total_margin").cast(pl.Float64) != float(fct_margin or 0))
    )


BUSINESS_RULES: List[BusinessRule] = [
    BusinessRule(
        name="assert_positive_order_quantities",
        description="Every order line has a quantity above zero",
        models=("stg_orders",),
        query=_positive_quantities,
    ),
    BusinessRule(
        name="assert_no_future_orders",
        description="No order is dated after the ingestion date",
        models=("stg_orders",),
        query=_no_future_orders,
    ),
    BusinessRule(
        name="assert_revenue_equals_quantity_times_price",
        description="Line revenue equals quantity x unit price",
        models=("int_order_items",),
        query=_revenue_matches_price,
    ),
    BusinessRule(
        name="assert_margin_equals_revenue_minus_cost",
        description="Line margin equals revenue - cost",
        models=("int_order_items",),
        query=_margin_matches_cost,
    ),
    BusinessRule(
        name="assert_order_items_billable_only",
        description="Only completed and returned lines reach the order items",
        models=("int_order_items",),
        query=_billable_items_only,
    ),
    BusinessRule(
        name="assert_daily_sales_units_reconcile",
        description="Units sold across daily facts equal quantity across order items",
        models=("fct_daily_sales", "int_order_items"),
        query=_daily_sales_units_reconcile,
    ),
    BusinessRule(
        name="assert_customer_dimension_complete",
        description="Every staged customer has a dimension row",
        models=("dim_customers", "stg_customers"),
        query=_customer_dimension_complete,
    ),
    BusinessRule(
        name="assert_inactive_customers_zeroed",
        description="Customers without orders carry zero revenue and quantity",
        models=("dim_customers",),
        query=_inactive_customers_zeroed,
    ),
    BusinessRule(
        name="assert_segment_matches_revenue",
        description="Segment agrees with lifetime revenue thresholds",
        models=("dim_customers",),
        query=_segment_matches_revenue,
    ),
    BusinessRule(
        name="assert_summary_average_guarded",
        description="Average revenue per unit is null exactly when no units were sold",
        models=("rpt_sales_summary",),
        query=_summary_average_guarded,
    ),
    BusinessRule(
        name="assert_summary_matches_daily_sales",
        description="Summary totals equal the daily sales totals",
        models=("rpt_sales_summary", "fct_daily_sales"),
        query=_summary_matches_daily_sales,
    ),
]


def evaluate_rule(
    rule: BusinessRule,
    models: Mapping[str, pl.DataFrame],
    context: RuleContext,
) -> ValidationCheck:
    """Run a single rule; rules whose models are absent fail with a message"""
    missing = [m for m in rule.models if m not in models]
    if missing:
        return ValidationCheck(
            name=rule.name,
            passed=False,
            severity=rule.severity,
            message=f"Models not available: {missing}",
        )

    frames = [models[m] for m in rule.models]
    failures = rule.query(context, *frames)
    return failing_rows_check(
        rule.name,
        failures,
        len(frames[0]),
        rule.severity,
        message_on_fail=f"{rule.description}: {{count}} failing row(s)",
        message_on_pass=rule.description,
        details={"models": list(rule.models)},
    )


def run_business_rules(
    models: Mapping[str, pl.DataFrame],
    context: RuleContext,
    rules: Optional[List[BusinessRule]] = None,
) -> ValidationResult:
    """
    Run business rules against built models.

    Args:
        models: Model name to DataFrame
        context: Rule parameters
        rules: Rules to run (defaults to BUSINESS_RULES)

    Returns:
        ValidationResult named "business_rules"
    """
    started_at = datetime.utcnow()
    results = []

    for rule in rules or BUSINESS_RULES:
        check = evaluate_rule(rule, models, context)
        results.append(check)
        if not check.passed:
            logger.warning(
                f"Business rule failed: {check.name}",
                message=check.message,
                severity=check.severity.value,
                failed_rows=check.failed_rows,
            )

    result = summarize_checks("business_rules", results, started_at)
    logger.info(
        f"Business rules complete: {result.status.value}",
        passed=result.passed_checks,
        failed=result.failed_checks,
    )
    return result
