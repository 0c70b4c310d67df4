"""
Data Test Runner

Runs the schema-test suite of every model plus the business rules against
the output of a pipeline run. All tests run; a failure in one model never
stops the others. With store_failures enabled, the failing rows of each
test are written as CSV for inspection.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import polars as pl
import structlog

from ecommerce_marts.config import get_settings
from .business_rules import RuleContext, run_business_rules
from .validators import (
    DataValidator,
    ValidationCheck,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
    create_customer_dimension_validator,
    create_daily_sales_validator,
    create_order_items_validator,
    create_sales_summary_validator,
    create_stg_customers_validator,
    create_stg_orders_validator,
    create_stg_products_validator,
)

logger = structlog.get_logger(__name__)
settings = get_settings()


@dataclass
class QualityReport:
    """Outcome of all data tests for one pipeline run"""
    results: List[ValidationResult] = field(default_factory=list)
    fail_on_warning: bool = False
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    stored_failures: Dict[str, str] = field(default_factory=dict)

    @property
    def checks(self) -> List[ValidationCheck]:
        return [check for result in self.results for check in result.checks]

    @property
    def failed_checks(self) -> List[ValidationCheck]:
        """Failed checks that fail the run"""
        return [
            c for c in self.checks
            if not c.passed
            and (c.severity == ValidationSeverity.ERROR or self.fail_on_warning)
        ]

    @property
    def warnings(self) -> List[ValidationCheck]:
        return [
            c for c in self.checks
            if not c.passed and c.severity == ValidationSeverity.WARNING
        ]

    @property
    def status(self) -> ValidationStatus:
        if self.failed_checks:
            return ValidationStatus.FAILED
        if self.warnings:
            return ValidationStatus.PARTIAL
        return ValidationStatus.PASSED

    @property
    def passed(self) -> bool:
        return self.status != ValidationStatus.FAILED

    def get_check(self, name: str) -> ValidationCheck:
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary of the test run"""
        return {
            "status": self.status.value,
            "total_checks": len(self.checks),
            "failed_checks": len(self.failed_checks),
            "warnings": len(self.warnings),
            "tests": [
                {
                    "name": c.name,
                    "passed": c.passed,
                    "severity": c.severity.value,
                    "message": c.message,
                    "failed_rows": c.failed_rows,
                }
                for c in self.checks
            ],
        }


def build_model_suites(models: Mapping[str, pl.DataFrame]) -> Dict[str, DataValidator]:
    """Schema-test suite for each model present"""
    suites: Dict[str, DataValidator] = {
        "stg_customers": create_stg_customers_validator(),
        "stg_products": create_stg_products_validator(),
        "int_order_items": create_order_items_validator(),
        "dim_customers": create_customer_dimension_validator(),
        "fct_daily_sales": create_daily_sales_validator(),
        "rpt_sales_summary": create_sales_summary_validator(),
    }
    if "stg_customers" in models and "stg_products" in models:
        suites["stg_orders"] = create_stg_orders_validator(
            models["stg_customers"],
            models["stg_products"],
        )
    return {name: suite for name, suite in suites.items() if name in models}


def _store_failures(report: QualityReport, failures_path: Path) -> None:
    failures_path.mkdir(parents=True, exist_ok=True)
    for check in report.checks:
        if check.passed or check.failures is None or len(check.failures) == 0:
            continue
        output_file = failures_path / f"{check.name}.csv"
        check.failures.write_csv(output_file)
        report.stored_failures[check.name] = str(output_file)
        logger.info("Stored test failures", test=check.name, rows=len(check.failures), file=str(output_file))


def run_data_tests(
    models: Union[Mapping[str, pl.DataFrame], Any],
    as_of_date: Optional[date] = None,
    high_value_threshold: Optional[float] = None,
    medium_value_threshold: Optional[float] = None,
    store_failures: Optional[bool] = None,
    failures_path: Optional[Union[str, Path]] = None,
    fail_on_warning: Optional[bool] = None,
) -> QualityReport:
    """
    Run every data test against built models.

    Args:
        models: Model name to DataFrame, or a PipelineResult
        as_of_date: Ingestion date for the future-order rule
        high_value_threshold: Segment threshold used by the segment rule
        medium_value_threshold: Segment threshold used by the segment rule
        store_failures: Write failing rows as CSV
        failures_path: Directory for stored failures
        fail_on_warning: Count warning-severity failures as errors

    Returns:
        QualityReport
    """
    models = getattr(models, "models", models)
    pipeline_settings = settings.pipeline
    quality_settings = settings.data_quality

    report = QualityReport(
        fail_on_warning=quality_settings.fail_on_warning if fail_on_warning is None else fail_on_warning,
    )

    for model, suite in build_model_suites(models).items():
        report.results.append(suite.validate(models[model]))

    context = RuleContext(
        as_of_date=as_of_date or pipeline_settings.ingestion_date,
        high_value_threshold=(
            pipeline_settings.high_value_threshold if high_value_threshold is None else high_value_threshold
        ),
        medium_value_threshold=(
            pipeline_settings.medium_value_threshold if medium_value_threshold is None else medium_value_threshold
        ),
    )
    report.results.append(run_business_rules(models, context))
    report.completed_at = datetime.utcnow()

    if quality_settings.store_failures if store_failures is None else store_failures:
        _store_failures(report, Path(failures_path or quality_settings.failures_path))

    logger.info(
        f"Data tests complete: {report.status.value}",
        total=len(report.checks),
        failed=len(report.failed_checks),
        warnings=len(report.warnings),
    )

    return report
