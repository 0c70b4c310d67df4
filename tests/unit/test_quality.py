"""
Unit Tests - Data Quality
"""
from datetime import date
from decimal import Decimal

import pytest
import polars as pl

from ecommerce_marts.quality.validators import (
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
    create_daily_sales_validator,
    create_sales_summary_validator,
    create_stg_orders_validator,
)
from ecommerce_marts.quality.business_rules import (
    BUSINESS_RULES,
    RuleContext,
    run_business_rules,
)
from ecommerce_marts.quality.suite_runner import run_data_tests
from ecommerce_marts.transformation import AnalyticsPipeline


AS_OF = date(2024, 3, 31)


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_passes(self):
        """Test not null check with valid data"""
        df = pl.DataFrame({"id": [1, 2, 3], "name": ["a", "b", "c"]})

        validator = DataValidator()
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 1

    def test_not_null_check_fails(self):
        """Test not null check returns the failing rows"""
        df = pl.DataFrame({"id": [1, None, 3], "name": ["a", "b", "c"]})

        validator = DataValidator("customers")
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.failed_checks == 1
        check = result.get_check("not_null_customers_id")
        assert check.failures["name"].to_list() == ["b"]

    def test_unique_check_passes(self):
        """Test unique check with unique values"""
        df = pl.DataFrame({"id": [1, 2, 3]})

        validator = DataValidator()
        validator.add_unique_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED

    def test_unique_check_fails(self):
        """Test unique check with duplicates"""
        df = pl.DataFrame({"id": [1, 2, 1]})

        validator = DataValidator()
        validator.add_unique_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 2
        assert result.checks[0].details["duplicate_keys"] == 1

    def test_unique_combination(self):
        """Test uniqueness over a column combination"""
        df = pl.DataFrame({
            "order_date": ["2024-03-01", "2024-03-01", "2024-03-02"],
            "product_id": [1, 2, 1],
        })

        validator = DataValidator("fct")
        validator.add_unique_check(["order_date", "product_id"])

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.checks[0].name == "unique_fct_order_date_product_id"

    def test_unique_ignores_null_keys(self):
        """Test null keys are left to the not_null test"""
        df = pl.DataFrame({"id": [1, None, None]})

        result = DataValidator().add_unique_check("id").validate(df)

        assert result.status == ValidationStatus.PASSED

    def test_range_check(self):
        """Test range check"""
        df = pl.DataFrame({"price": [10.0, 50.0, -5.0, 200.0]})

        validator = DataValidator()
        validator.add_range_check("price", min_value=0, max_value=100)

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        # Two values outside range: -5 and 200
        check = result.checks[0]
        assert check.failed_rows == 2

    def test_positive_check_excludes_zero(self):
        """Test strictly positive check"""
        df = pl.DataFrame({"units": [1, 0, 3]})

        result = DataValidator().add_positive_check("units", allow_zero=False).validate(df)

        assert result.checks[0].failed_rows == 1

    def test_accepted_values_check(self):
        """Test allowed values check"""
        df = pl.DataFrame({"status": ["pending", "shipped", "invalid"]})

        validator = DataValidator()
        validator.add_accepted_values_check("status", ["pending", "shipped", "delivered"])

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].details["invalid_values"] == ["invalid"]

    def test_pattern_check(self):
        """Test regex pattern check"""
        df = pl.DataFrame({"email": ["test@example.com", "invalid", "user@test.org"]})

        validator = DataValidator()
        validator.add_pattern_check("email", r".*@.*\..*")

        result = validator.validate(df)

        # "invalid" doesn't match pattern
        assert result.status == ValidationStatus.FAILED

    def test_referential_integrity_check(self):
        """Test orphan keys are reported"""
        customers = pl.DataFrame({"customer_id": [1, 2]})
        orders = pl.DataFrame({"order_id": [10, 11, 12], "customer_id": [1, 9, None]})

        validator = DataValidator("orders")
        validator.add_referential_integrity_check("customer_id", customers, "customer_id")

        result = validator.validate(orders)

        check = result.get_check("relationships_orders_customer_id")
        assert not check.passed
        assert check.failures["order_id"].to_list() == [11]
        assert check.details["orphan_values"] == [9]

    def test_warning_is_partial(self):
        """Test warning failures do not fail the suite"""
        df = pl.DataFrame({"email": [None, "a@b.com"]})

        validator = DataValidator()
        validator.add_not_null_check("email", severity=ValidationSeverity.WARNING)

        result = validator.validate(df)

        assert result.status == ValidationStatus.PARTIAL
        assert result.warning_count == 1

    def test_strict_mode_fails_on_warning(self):
        """Test strict mode"""
        df = pl.DataFrame({"email": [None, "a@b.com"]})

        validator = DataValidator(strict_mode=True)
        validator.add_not_null_check("email", severity=ValidationSeverity.WARNING)

        assert validator.validate(df).status == ValidationStatus.FAILED

    def test_custom_check(self):
        """Test custom validation check"""
        df = pl.DataFrame({"total": [100, 200, 300]})

        validator = DataValidator()
        validator.add_custom_check(
            name="total_below_250",
            check_func=lambda df: df.filter(pl.col("total") >= 250),
            message_on_fail="{count} totals at or above 250",
        )

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].message == "1 totals at or above 250"

    def test_custom_check_error(self):
        """Test an exception inside a check becomes a failure"""
        df = pl.DataFrame({"total": [100]})

        validator = DataValidator()
        validator.add_custom_check(
            name="broken",
            check_func=lambda df: df.filter(pl.col("missing") > 0),
            message_on_fail="never",
        )

        result = validator.validate(df)

        assert not result.checks[0].passed
        assert "error" in result.checks[0].message

    def test_missing_column(self):
        """Test a check on an absent column fails instead of raising"""
        df = pl.DataFrame({"id": [1]})

        result = DataValidator().add_not_null_check("email").validate(df)

        assert result.status == ValidationStatus.FAILED

    def test_stg_orders_validator(self, pipeline_result):
        """Test pre-built orders suite against staged seeds"""
        validator = create_stg_orders_validator(
            pipeline_result["stg_customers"],
            pipeline_result["stg_products"],
        )
        result = validator.validate(pipeline_result["stg_orders"])

        assert result.total_checks > 0
        assert result.status == ValidationStatus.PASSED

    def test_daily_sales_duplicates_detected(self, pipeline_result):
        """Test the grain check on fct_daily_sales"""
        daily = pipeline_result["fct_daily_sales"]
        duplicated = pl.concat([daily, daily.head(1)])

        result = create_daily_sales_validator().validate(duplicated)

        check = result.get_check("unique_fct_daily_sales_order_date_product_id")
        assert check.failed_rows == 2

    def test_summary_must_be_single_row(self, pipeline_result):
        """Test an empty summary fails the row count check"""
        result = create_sales_summary_validator().validate(pipeline_result["rpt_sales_summary"].clear())

        assert not result.get_check("single_row_rpt_sales_summary").passed


class TestBusinessRules:
    """Tests for singular business rule checks"""

    def test_rules_pass_on_seeds(self, pipeline_result):
        """Test every rule holds on the packaged seeds"""
        result = run_business_rules(pipeline_result.models, RuleContext(as_of_date=AS_OF))

        assert result.total_checks == len(BUSINESS_RULES)
        assert result.status == ValidationStatus.PASSED, [c.message for c in result.failures]

    def test_future_orders_flagged(self, pipeline_result):
        """Test orders after the ingestion date are reported"""
        result = run_business_rules(pipeline_result.models, RuleContext(as_of_date=date(2024, 3, 4)))

        check = result.get_check("assert_no_future_orders")
        assert not check.passed
        assert sorted(check.failures["order_id"].to_list()) == [1005, 1011, 1012, 1013, 1014, 1015]

    def test_wrong_segment_flagged(self, pipeline_result):
        """Test a mislabelled customer is reported"""
        models = dict(pipeline_result.models)
        models["dim_customers"] = models["dim_customers"].with_columns(
            pl.when(pl.col("customer_id") == 1)
            .then(pl.lit("high_value"))
            .otherwise(pl.col("customer_segment"))
            .alias("customer_segment")
        )

        result = run_business_rules(models, RuleContext(as_of_date=AS_OF))

        check = result.get_check("assert_segment_matches_revenue")
        assert check.failures["customer_id"].to_list() == [1]

    def test_units_mismatch_flagged(self, pipeline_result):
        """Test daily sales that do not reconcile with order items"""
        models = dict(pipeline_result.models)
        models["fct_daily_sales"] = models["fct_daily_sales"].head(1)

        result = run_business_rules(models, RuleContext(as_of_date=AS_OF))

        check = result.get_check("assert_daily_sales_units_reconcile")
        assert not check.passed
        assert check.failures["order_items_quantity"].to_list() == [16]

    def test_missing_model_fails_rule(self, pipeline_result):
        """Test a rule whose model is absent fails with a message"""
        models = {k: v for k, v in pipeline_result.models.items() if k != "rpt_sales_summary"}

        result = run_business_rules(models, RuleContext(as_of_date=AS_OF))

        check = result.get_check("assert_summary_average_guarded")
        assert not check.passed
        assert "rpt_sales_summary" in check.message


class TestRunDataTests:
    """Tests for the data test runner"""

    def test_seeds_pass(self, pipeline_result):
        """Test the full suite passes on the packaged seeds"""
        report = run_data_tests(pipeline_result, as_of_date=AS_OF, store_failures=False)

        assert report.passed
        assert report.status == ValidationStatus.PASSED
        assert len(report.checks) > len(BUSINESS_RULES)

    def test_orphan_order_reported_not_aborted(self, raw_tables, tmp_path):
        """Test an order for an unknown customer fails a test but the run completes"""
        orphan = pl.DataFrame({
            "order_id": ["1016"],
            "customer_id": ["99"],
            "product_id": ["1"],
            "quantity": ["1"],
            "unit_price": ["29.99"],
            "order_date": ["2024-03-06"],
            "status": ["completed"],
        })
        raw_tables["raw_orders"] = pl.concat([raw_tables["raw_orders"], orphan])

        result = AnalyticsPipeline(output_path=tmp_path).run(raw_tables)
        report = run_data_tests(result, as_of_date=AS_OF, store_failures=False)

        assert not report.passed
        check = report.get_check("relationships_stg_orders_customer_id")
        assert check.failures["order_id"].to_list() == [1016]
        # Every other suite still ran
        assert report.get_check("single_row_rpt_sales_summary").passed

    def test_warning_does_not_fail_by_default(self, raw_tables, tmp_path):
        """Test a malformed email is a warning"""
        raw_tables["raw_customers"] = raw_tables["raw_customers"].with_columns(
            pl.when(pl.col("customer_id") == "6")
            .then(pl.lit("not-an-email"))
            .otherwise(pl.col("email"))
            .alias("email")
        )
        result = AnalyticsPipeline(output_path=tmp_path).run(raw_tables)

        report = run_data_tests(result, as_of_date=AS_OF, store_failures=False, fail_on_warning=False)
        strict = run_data_tests(result, as_of_date=AS_OF, store_failures=False, fail_on_warning=True)

        assert report.passed
        assert report.status == ValidationStatus.PARTIAL
        assert [c.name for c in report.warnings] == ["pattern_stg_customers_email"]
        assert not strict.passed

    def test_store_failures(self, pipeline_result, tmp_path):
        """Test failing rows are written per test"""
        failures_path = tmp_path / "failures"

        report = run_data_tests(
            pipeline_result,
            as_of_date=date(2024, 3, 4),
            store_failures=True,
            failures_path=failures_path,
        )

        stored = failures_path / "assert_no_future_orders.csv"
        assert stored.exists()
        assert report.stored_failures["assert_no_future_orders"] == str(stored)
        assert len(pl.read_csv(stored)) == 6

    def test_report_to_dict(self, pipeline_result):
        """Test JSON-friendly report"""
        report = run_data_tests(pipeline_result, as_of_date=AS_OF, store_failures=False)

        summary = report.to_dict()

        assert summary["status"] == "passed"
        assert summary["failed_checks"] == 0
        assert summary["total_checks"] == len(summary["tests"])

    def test_summary_values(self, pipeline_result):
        """Test the summary row agrees with the daily facts"""
        summary = pipeline_result["rpt_sales_summary"].row(0, named=True)
        daily = pipeline_result["fct_daily_sales"]

        assert summary["total_units"] == daily["units_sold"].sum()
        assert summary["total_revenue"] == Decimal("1289.84")
