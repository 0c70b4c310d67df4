"""
Command-Line Entry Point

Usage:
    ecommerce-marts seed              Load and check the raw seed files
    ecommerce-marts run               Build every model and write the marts
    ecommerce-marts test              Build every model in memory and run the data tests
    ecommerce-marts build             run + test, writing run_results.json

Exit status: 0 on success, 1 when an error-severity data test fails,
2 when the run aborts on bad seed files or uncastable values.
"""

import argparse
import sys
from datetime import date
from typing import List, Optional

import structlog

from ecommerce_marts import __version__
from ecommerce_marts.config import get_settings
from ecommerce_marts.config.logging import configure_logging
from ecommerce_marts.ingestion import SeedLoader, SeedLoadError
from ecommerce_marts.quality import QualityReport, run_data_tests
from ecommerce_marts.transformation import AnalyticsPipeline, DataCastError, PipelineResult

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_TESTS_FAILED = 1
EXIT_FATAL = 2


def _pipeline(args: argparse.Namespace) -> AnalyticsPipeline:
    return AnalyticsPipeline(
        output_path=args.output_path,
        output_format=args.format,
    )


def _build_models(args: argparse.Namespace) -> PipelineResult:
    tables, _ = SeedLoader(args.seeds_path).load_all()
    return _pipeline(args).run(tables)


def _test_models(args: argparse.Namespace, result: PipelineResult) -> QualityReport:
    return run_data_tests(
        result,
        as_of_date=args.as_of,
        store_failures=True if args.store_failures else None,
    )


def _print_report(report: QualityReport) -> None:
    for check in report.checks:
        marker = "PASS" if check.passed else check.severity.value.upper()
        print(f"{marker:<8} {check.name}: {check.message}")
    print(
        f"\n{len(report.checks)} tests, {len(report.failed_checks)} failed, "
        f"{len(report.warnings)} warnings -> {report.status.value}"
    )


def cmd_seed(args: argparse.Namespace) -> int:
    """Load the raw seed files"""
    _, results = SeedLoader(args.seeds_path).load_all()
    for result in results:
        print(f"{result.table:<16} {result.rows_loaded:>6} rows  {result.file_hash}")
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    """Build every model and write the published marts"""
    pipeline = _pipeline(args)
    tables, _ = SeedLoader(args.seeds_path).load_all()
    result = pipeline.run(tables)

    for model in result.results:
        print(f"{model.layer.value:<13} {model.name:<20} {model.output_rows:>6} rows")
    for name, path in pipeline.write_outputs(result).items():
        print(f"wrote {name} -> {path}")
    pipeline.write_run_results(result)
    return EXIT_OK


def cmd_test(args: argparse.Namespace) -> int:
    """Run the data tests against freshly built models"""
    result = _build_models(args)
    report = _test_models(args, result)
    _print_report(report)
    return EXIT_OK if report.passed else EXIT_TESTS_FAILED


def cmd_build(args: argparse.Namespace) -> int:
    """Build, write and test"""
    pipeline = _pipeline(args)
    tables, _ = SeedLoader(args.seeds_path).load_all()
    result = pipeline.run(tables)
    paths = pipeline.write_outputs(result)

    if not get_settings().data_quality.enable_data_quality_checks:
        logger.warning("Data tests disabled", setting="ENABLE_DATA_QUALITY_CHECKS")
        pipeline.write_run_results(result, extra={"outputs": paths})
        return EXIT_OK

    report = _test_models(args, result)
    _print_report(report)
    pipeline.write_run_results(result, extra={"outputs": paths, "tests": report.to_dict()})
    return EXIT_OK if report.passed else EXIT_TESTS_FAILED


COMMANDS = {
    "seed": cmd_seed,
    "run": cmd_run,
    "test": cmd_test,
    "build": cmd_build,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecommerce-marts",
        description="Build and test the e-commerce analytics marts",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "command",
        choices=sorted(COMMANDS),
        help="Pipeline command to run",
    )
    parser.add_argument(
        "--seeds-path",
        default=None,
        help="Directory holding raw_customers.csv, raw_orders.csv and raw_products.csv",
    )
    parser.add_argument(
        "--output-path",
        default=None,
        help="Directory for published models and run_results.json",
    )
    parser.add_argument(
        "--format",
        choices=["parquet", "csv"],
        default=None,
        help="Output file format",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Ingestion date for the future-order check (YYYY-MM-DD, default today)",
    )
    parser.add_argument(
        "--store-failures",
        action="store_true",
        help="Write failing rows of each data test as CSV",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default from LOG_LEVEL)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the command and return its exit status"""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or get_settings().monitoring.log_level)

    try:
        return COMMANDS[args.command](args)
    except (SeedLoadError, DataCastError) as e:
        logger.error("Run aborted", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
