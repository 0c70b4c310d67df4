"""
Data Transformation Module
"""
from .cleaners import CURRENCY, DataCastError, DataCleaner, clean_dataframe
from .enrichers import DataEnricher, enrich_customer_data, enrich_order_data
from .transformers import (
    AnalyticsPipeline,
    CustomerSegment,
    MartBuilder,
    PipelineResult,
    classify_segment,
    run_pipeline,
)

__all__ = [
    "CURRENCY",
    "DataCastError",
    "DataCleaner",
    "clean_dataframe",
    "DataEnricher",
    "enrich_customer_data",
    "enrich_order_data",
    "AnalyticsPipeline",
    "CustomerSegment",
    "MartBuilder",
    "PipelineResult",
    "classify_segment",
    "run_pipeline",
]
