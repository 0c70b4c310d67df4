"""
Data Validation Module

Generic data tests over named model outputs, in the style of schema tests:
- not_null
- unique (single column or column combination)
- accepted_values
- relationships (referential integrity)
- range and pattern checks
- row-level expression checks

Every check reports the set of failing rows rather than just a count, so a
failure can be inspected or stored. Failures never raise; they are collected
into a ValidationResult.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import polars as pl
import structlog

from ecommerce_marts.transformation.cleaners import ORDER_STATUSES
from ecommerce_marts.transformation.enrichers import BILLABLE_STATUSES
from ecommerce_marts.transformation.transformers import CustomerSegment

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Fails the run
    WARNING = "warning"  # Reported, does not fail the run


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0
    failures: Optional[pl.DataFrame] = None


@dataclass
class ValidationResult:
    """Complete validation suite result for one model"""
    model: str
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def failures(self) -> List[ValidationCheck]:
        """Checks that did not pass, of any severity"""
        return [c for c in self.checks if not c.passed]

    def get_check(self, name: str) -> ValidationCheck:
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)


def summarize_checks(
    model: str,
    results: List[ValidationCheck],
    started_at: datetime,
    strict_mode: bool = False,
) -> ValidationResult:
    """Fold individual check results into a ValidationResult"""
    passed_checks = sum(1 for r in results if r.passed)
    failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
    warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

    if failed_checks > 0:
        status = ValidationStatus.FAILED
    elif warning_count > 0 and strict_mode:
        status = ValidationStatus.FAILED
    elif warning_count > 0:
        status = ValidationStatus.PARTIAL
    else:
        status = ValidationStatus.PASSED

    return ValidationResult(
        model=model,
        status=status,
        total_checks=len(results),
        passed_checks=passed_checks,
        failed_checks=failed_checks,
        warning_count=warning_count,
        checks=results,
        started_at=started_at,
        completed_at=datetime.utcnow(),
    )


def failing_rows_check(
    name: str,
    failures: pl.DataFrame,
    total_rows: int,
    severity: ValidationSeverity,
    message_on_fail: str,
    message_on_pass: str = "Check passed",
    details: Optional[Dict[str, Any]] = None,
) -> ValidationCheck:
    """Build a ValidationCheck from the frame of failing rows"""
    failed = len(failures)
    passed = failed == 0
    return ValidationCheck(
        name=name,
        passed=passed,
        severity=severity,
        message=message_on_pass if passed else message_on_fail.format(count=failed),
        details=details,
        failed_rows=failed,
        total_rows=total_rows,
        failures=failures,
    )


class DataValidator:
    """
    Data test suite for a single model.

    Example:
        validator = DataValidator("stg_orders")
        validator.add_not_null_check("order_id")
        validator.add_accepted_values_check("status", ["completed", "pending"])
        result = validator.validate(stg_orders)
    """

    def __init__(self, model: str = "", strict_mode: bool = False):
        self.model = model
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    def _name(self, test: str, column: Union[str, List[str]]) -> str:
        column_part = "_".join(column) if isinstance(column, list) else column
        if self.model:
            return f"{test}_{self.model}_{column_part}"
        return f"{test}_{column_part}"

    def _missing_columns(self, df: pl.DataFrame, columns: List[str]) -> List[str]:
        return [c for c in columns if c not in df.columns]

    def _missing_column_check(
        self,
        name: str,
        missing: List[str],
        severity: ValidationSeverity,
    ) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column(s) not found: {missing}",
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        name = self._name("not_null", column)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing_columns(df, [column])
            if missing:
                return self._missing_column_check(name, missing, severity)

            failures = df.filter(pl.col(column).is_null())
            total = len(df)
            return failing_rows_check(
                name,
                failures,
                total,
                severity,
                message_on_fail=f"Column '{column}' has {{count}} null values",
                message_on_pass=f"Column '{column}' has no null values",
                details={
                    "null_count": len(failures),
                    "null_percentage": (len(failures) / total) * 100 if total > 0 else 0,
                },
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        columns: Union[str, List[str]],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add uniqueness check on a column or a combination of columns"""
        key = [columns] if isinstance(columns, str) else list(columns)
        name = self._name("unique", columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing_columns(df, key)
            if missing:
                return self._missing_column_check(name, missing, severity)

            # Rows with a null key are the not_null test's concern
            candidates = df.filter(pl.all_horizontal([pl.col(c).is_not_null() for c in key]))
            failures = candidates.filter(candidates.select(key).is_duplicated())
            duplicate_keys = failures.select(key).unique().height

            return failing_rows_check(
                name,
                failures,
                len(df),
                severity,
                message_on_fail=f"{key} has {{count}} rows sharing {duplicate_keys} duplicated value(s)",
                message_on_pass=f"{key} values are unique",
                details={"duplicate_keys": duplicate_keys},
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        strict_min: bool = False,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        name = self._name("range", column)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing_columns(df, [column])
            if missing:
                return self._missing_column_check(name, missing, severity)

            value = pl.col(column).cast(pl.Float64)
            conditions = []
            if min_value is not None:
                conditions.append(value <= min_value if strict_min else value < min_value)
            if max_value is not None:
                conditions.append(value > max_value)

            if not conditions:
                return ValidationCheck(
                    name=name,
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            # Combine conditions with OR
            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            failures = df.filter(combined)
            lower = "(" if strict_min else "["
            return failing_rows_check(
                name,
                failures,
                len(df),
                severity,
                message_on_fail=f"Column '{column}' has {{count}} values outside range {lower}{min_value}, {max_value}]",
                message_on_pass="All values in range",
                details={"min": min_value, "max": max_value, "strict_min": strict_min},
            )

        self._checks.append(check)
        return self

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for positive (or non-negative) values"""
        return self.add_range_check(column, min_value=0, strict_min=not allow_zero, severity=severity)

    def add_pattern_check(
        self,
        column: str,
        pattern: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add regex pattern check"""
        name = self._name("pattern", column)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing_columns(df, [column])
            if missing:
                return self._missing_column_check(name, missing, severity)

            failures = df.filter(
                ~pl.col(column).str.contains(pattern) & pl.col(column).is_not_null()
            )
            total = df.filter(pl.col(column).is_not_null()).height
            return failing_rows_check(
                name,
                failures,
                total,
                severity,
                message_on_fail=f"Column '{column}' has {{count}} values not matching pattern",
                message_on_pass="All values match pattern",
                details={"pattern": pattern},
            )

        self._checks.append(check)
        return self

    def add_accepted_values_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set"""
        name = self._name("accepted_values", column)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing_columns(df, [column])
            if missing:
                return self._missing_column_check(name, missing, severity)

            failures = df.filter(
                ~pl.col(column).is_in(allowed_values) & pl.col(column).is_not_null()
            )
            return failing_rows_check(
                name,
                failures,
                len(df),
                severity,
                message_on_fail=f"Column '{column}' has {{count}} values outside {allowed_values}",
                message_on_pass="All values are accepted",
                details={
                    "allowed_values": allowed_values,
                    "invalid_values": sorted(set(failures[column].to_list()), key=str),
                },
            )

        self._checks.append(check)
        return self

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add relationships check: every non-null value must exist in the reference"""
        name = self._name("relationships", column)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing_columns(df, [column])
            if missing:
                return self._missing_column_check(name, missing, severity)

            ref_values = reference_df[reference_column].drop_nulls().unique().to_list()
            failures = df.filter(
                ~pl.col(column).is_in(ref_values) & pl.col(column).is_not_null()
            )
            return failing_rows_check(
                name,
                failures,
                len(df),
                severity,
                message_on_fail=f"Column '{column}' has {{count}} orphan records",
                message_on_pass="Referential integrity maintained",
                details={
                    "reference_column": reference_column,
                    "orphan_values": sorted(set(failures[column].to_list()), key=str),
                },
            )

        self._checks.append(check)
        return self

    def add_expression_check(
        self,
        name: str,
        failing_expr: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add row-level check; rows where failing_expr is true fail"""

        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                failures = df.filter(failing_expr.fill_null(False))
            except pl.exceptions.ColumnNotFoundError as e:
                return self._missing_column_check(name, [str(e)], severity)
            return failing_rows_check(
                name,
                failures,
                len(df),
                severity,
                message_on_fail=message_on_fail,
            )

        self._checks.append(check)
        return self

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], pl.DataFrame],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add custom check; check_func returns the failing rows"""

        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                failures = check_func(df)
            except Exception as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {str(e)}",
                )
            return failing_rows_check(name, failures, len(df), severity, message_on_fail)

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        logger.debug(f"Running {len(self._checks)} validation checks on {len(df)} rows", model=self.model)

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                    failed_rows=result.failed_rows,
                )

        validation_result = summarize_checks(self.model, results, started_at, self.strict_mode)

        logger.info(
            f"Validation complete: {validation_result.status.value}",
            model=self.model,
            passed=validation_result.passed_checks,
            failed=validation_result.failed_checks,
            warnings=validation_result.warning_count,
        )

        return validation_result


# Pre-built suites for each model
EMAIL_PATTERN = r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$"


def create_stg_customers_validator() -> DataValidator:
    """Create suite for stg_customers"""
    return (
        DataValidator("stg_customers")
        .add_not_null_check("customer_id")
        .add_unique_check("customer_id")
        .add_not_null_check("email", severity=ValidationSeverity.WARNING)
        .add_pattern_check("email", EMAIL_PATTERN, severity=ValidationSeverity.WARNING)
    )


def create_stg_products_validator() -> DataValidator:
    """Create suite for stg_products"""
    return (
        DataValidator("stg_products")
        .add_not_null_check("product_id")
        .add_unique_check("product_id")
        .add_not_null_check("product_name")
        .add_positive_check("unit_cost")
    )


def create_stg_orders_validator(
    customers_df: pl.DataFrame,
    products_df: pl.DataFrame,
) -> DataValidator:
    """Create suite for stg_orders, including relationships to customers and products"""
    return (
        DataValidator("stg_orders")
        .add_not_null_check("order_id")
        .add_unique_check("order_id")
        .add_not_null_check("customer_id")
        .add_not_null_check("product_id")
        .add_not_null_check("order_date")
        .add_accepted_values_check("status", ORDER_STATUSES)
        .add_referential_integrity_check("customer_id", customers_df, "customer_id")
        .add_referential_integrity_check("product_id", products_df, "product_id")
        .add_positive_check("unit_price")
    )


def create_order_items_validator() -> DataValidator:
    """Create suite for int_order_items"""
    return (
        DataValidator("int_order_items")
        .add_not_null_check("order_id")
        .add_not_null_check("revenue")
        .add_accepted_values_check("status", BILLABLE_STATUSES)
    )


def create_customer_dimension_validator() -> DataValidator:
    """Create suite for dim_customers"""
    return (
        DataValidator("dim_customers")
        .add_not_null_check("customer_id")
        .add_unique_check("customer_id")
        .add_not_null_check("total_revenue")
        .add_not_null_check("order_count")
        .add_accepted_values_check("customer_segment", [s.value for s in CustomerSegment])
    )


def create_daily_sales_validator() -> DataValidator:
    """Create suite for fct_daily_sales"""
    return (
        DataValidator("fct_daily_sales")
        .add_not_null_check("order_date")
        .add_not_null_check("product_id")
        .add_unique_check(["order_date", "product_id"])
        .add_positive_check("units_sold", allow_zero=False)
    )


def _row_count_mismatch(expected: int) -> Callable[[pl.DataFrame], pl.DataFrame]:
    def check(df: pl.DataFrame) -> pl.DataFrame:
        found = [len(df)] if len(df) != expected else []
        return pl.DataFrame({"row_count": found}, schema={"row_count": pl.Int64})
    return check


def create_sales_summary_validator() -> DataValidator:
    """Create suite for rpt_sales_summary"""
    return (
        DataValidator("rpt_sales_summary")
        .add_custom_check(
            name="single_row_rpt_sales_summary",
            check_func=_row_count_mismatch(1),
            message_on_fail="Summary must contain exactly one row",
        )
        .add_positive_check("total_units")
        .add_positive_check("active_days")
    )
