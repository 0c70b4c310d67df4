"""
Prefect Workflow Orchestration - Analytics Marts

Runs the seed -> run -> test sequence:
- Seed loading with retries
- Full-refresh model build and publication
- Data tests with an alert on failure
"""

from datetime import date
from typing import Optional

from prefect import flow, task, get_run_logger

from ecommerce_marts.config import get_settings
from ecommerce_marts.ingestion import SeedLoader
from ecommerce_marts.quality import run_data_tests
from ecommerce_marts.transformation import AnalyticsPipeline

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="load_seeds",
    description="Load raw seed files",
    retries=3,
    retry_delay_seconds=60,
)
def load_seeds(seeds_path: Optional[str] = None) -> dict:
    """Load the raw seed tables"""
    logger = get_run_logger()

    tables, results = SeedLoader(seeds_path).load_all()
    for result in results:
        logger.info(f"Loaded {result.rows_loaded} rows into {result.table}")

    return tables


@task(
    name="run_models",
    description="Build every model and publish the marts",
)
def run_models(tables: dict, output_path: Optional[str] = None) -> dict:
    """Build models and write the published ones"""
    logger = get_run_logger()

    pipeline = AnalyticsPipeline(output_path=output_path)
    result = pipeline.run(tables)
    paths = pipeline.write_outputs(result)
    pipeline.write_run_results(result, extra={"outputs": paths})

    logger.info(f"Built {len(result.results)} models in {result.duration_seconds:.2f}s")

    return {"models": result.models, "outputs": paths}


@task(
    name="test_models",
    description="Run data tests against built models",
)
def test_models(models: dict, as_of_date: Optional[date] = None) -> dict:
    """Run schema tests and business rules"""
    logger = get_run_logger()

    report = run_data_tests(models, as_of_date=as_of_date)

    logger.info(
        f"Data tests {report.status.value}: "
        f"{len(report.checks) - len(report.failed_checks)}/{len(report.checks)} passed"
    )

    return report.to_dict()


@task(
    name="send_alert",
    description="Send alert notification",
)
def send_alert(
    alert_type: str,
    message: str,
    severity: str = "info",
) -> None:
    """Send alert notification"""
    logger = get_run_logger()
    logger.warning(f"[{severity.upper()}] {alert_type}: {message}")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="analytics_marts_build",
    description="Full-refresh build of the e-commerce analytics marts",
)
def analytics_marts_build(
    seeds_path: Optional[str] = None,
    output_path: Optional[str] = None,
    as_of_date: Optional[date] = None,
) -> dict:
    """
    Analytics marts build.

    Steps:
    1. Load raw seeds
    2. Build and publish models
    3. Run data tests
    4. Alert when tests fail
    """
    logger = get_run_logger()
    logger.info("Starting analytics marts build")

    tables = load_seeds(seeds_path)
    built = run_models(tables, output_path)

    if not settings.data_quality.enable_data_quality_checks:
        logger.info("Data tests disabled, skipping")
        return {"outputs": built["outputs"], "tests": None, "status": "success"}

    tests = test_models(built["models"], as_of_date)

    if tests["status"] == "failed":
        send_alert(
            alert_type="Data Tests Failed",
            message=f"{tests['failed_checks']} of {tests['total_checks']} data tests failed",
            severity="critical",
        )

    return {
        "outputs": built["outputs"],
        "tests": tests,
        "status": "failed" if tests["status"] == "failed" else "success",
    }


if __name__ == "__main__":
    analytics_marts_build()
