"""
Test Suite Configuration
"""
from datetime import date
from typing import Dict

import pytest
import polars as pl

from ecommerce_marts.config import Settings
from ecommerce_marts.config.settings import DEFAULT_SEEDS_PATH
from ecommerce_marts.ingestion import load_seeds
from ecommerce_marts.transformation import AnalyticsPipeline, PipelineResult


AS_OF = date(2024, 3, 31)


@pytest.fixture(scope="session")
def as_of() -> date:
    """Ingestion date after every seed order"""
    return AS_OF


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture(scope="session")
def seeds_path() -> str:
    """Directory of the packaged seed files"""
    return str(DEFAULT_SEEDS_PATH)


@pytest.fixture
def raw_tables(seeds_path) -> Dict[str, pl.DataFrame]:
    """Raw seed tables as loaded from CSV"""
    return load_seeds(seeds_path)


@pytest.fixture
def pipeline(tmp_path) -> AnalyticsPipeline:
    """Pipeline writing to a temporary directory"""
    return AnalyticsPipeline(output_path=tmp_path / "marts", output_format="csv")


@pytest.fixture
def pipeline_result(pipeline, raw_tables) -> PipelineResult:
    """All models built from the packaged seeds"""
    return pipeline.run(raw_tables)


@pytest.fixture
def raw_customers_df() -> pl.DataFrame:
    """Raw customers as untyped text"""
    return pl.DataFrame({
        "customer_id": ["1", "2", "3"],
        "customer_name": ["  Alice Johnson ", "Bob Smith", "Carol White"],
        "email": [" Alice@Example.COM ", "bob@example.com", "CAROL@example.com"],
        "region": ["North", " South", "East"],
        "signup_date": ["2024-01-05", "2024-01-12", "2024-01-20"],
    })


@pytest.fixture
def raw_products_df() -> pl.DataFrame:
    """Raw products as untyped text"""
    return pl.DataFrame({
        "product_id": ["1", "2", "3"],
        "product_name": ["Widget A", " Widget B", "Gadget Pro"],
        "category": ["widgets", "widgets", "gadgets "],
        "unit_cost": ["15.00", "$25.00", "80.00"],
    })


@pytest.fixture
def raw_orders_df() -> pl.DataFrame:
    """Raw orders as untyped text"""
    return pl.DataFrame({
        "order_id": ["1001", "1002", "1003", "1004", "1005"],
        "customer_id": ["1", "1", "2", "2", "3"],
        "product_id": ["1", "2", "3", "1", "2"],
        "quantity": ["2", " 1 ", "1", "3", "1"],
        "unit_price": ["29.99", "49.99", "149.99", "29.99", "49.99"],
        "order_date": ["2024-03-01", "2024-03-02", "2024-03-02", "2024-03-03", "2024-03-03"],
        "status": ["completed", " Completed", "RETURNED", "pending", "cancelled"],
    })
