"""
Data Ingestion Module
"""
from .seed_loader import SeedLoader, SeedFileConfig, SeedLoadError, LoadResult, load_seeds

__all__ = [
    "SeedLoader",
    "SeedFileConfig",
    "SeedLoadError",
    "LoadResult",
    "load_seeds",
]
