"""
Seed Loader

Reads the raw customer, order and product seed files that feed the
staging models. Every column is read as text: typing is the job of the
cleaning stage, which reports values it cannot cast.

Supports:
- CSV seeds with configurable delimiter and null tokens
- Required-column checks per seed table
- File hashing for run audit
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import hashlib

import polars as pl
import structlog
from pydantic import BaseModel

from ecommerce_marts.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


# Required columns per seed table
SEED_COLUMNS: Dict[str, List[str]] = {
    "raw_customers": ["customer_id", "customer_name", "email", "region", "signup_date"],
    "raw_orders": [
        "order_id",
        "customer_id",
        "product_id",
        "quantity",
        "unit_price",
        "order_date",
        "status",
    ],
    "raw_products": ["product_id", "product_name", "category", "unit_cost"],
}


class SeedLoadError(ValueError):
    """Raised when a seed file is missing or does not have the required columns"""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")


class LoadStatus(str, Enum):
    """Seed load status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SeedFileConfig:
    """Configuration for reading a single seed file"""
    file_path: Union[str, Path]
    table: str
    delimiter: str = ","
    encoding: str = "utf8"
    null_values: List[str] = field(default_factory=lambda: ["", "NULL", "null", "None", "NA", "N/A"])


class LoadResult(BaseModel):
    """Result of a seed load operation"""
    file_path: str
    table: str
    status: LoadStatus
    rows_loaded: int = 0
    error_message: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


class SeedLoader:
    """
    Loader for the raw seed tables.

    Example:
        loader = SeedLoader("ecommerce_marts/data/seeds")
        tables, results = loader.load_all()
        tables["raw_orders"].height
    """

    def __init__(self, seeds_path: Optional[Union[str, Path]] = None):
        self.seeds_path = Path(seeds_path or settings.pipeline.seeds_path)

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of the seed file"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_csv(self, config: SeedFileConfig) -> pl.DataFrame:
        """Read CSV with every column as text"""
        return pl.read_csv(
            config.file_path,
            separator=config.delimiter,
            encoding=config.encoding,
            null_values=config.null_values,
            infer_schema_length=0,
        )

    def _validate_columns(self, df: pl.DataFrame, table: str) -> List[str]:
        """Return the required columns missing from the frame"""
        return [col for col in SEED_COLUMNS.get(table, []) if col not in df.columns]

    def config_for(self, table: str) -> SeedFileConfig:
        """Default file configuration for a seed table"""
        return SeedFileConfig(file_path=self.seeds_path / f"{table}.csv", table=table)

    def load(self, config: SeedFileConfig) -> Tuple[pl.DataFrame, LoadResult]:
        """
        Load a single seed file.

        Args:
            config: Seed file configuration

        Returns:
            Tuple of the raw DataFrame and its LoadResult

        Raises:
            SeedLoadError: File is missing or lacks required columns
        """
        file_path = Path(config.file_path)
        started_at = datetime.utcnow()

        result = LoadResult(
            file_path=str(file_path),
            table=config.table,
            status=LoadStatus.RUNNING,
            started_at=started_at,
        )

        if not file_path.exists():
            logger.error("Seed file not found", file=str(file_path), table=config.table)
            raise SeedLoadError(config.table, f"file not found: {file_path}")

        result.file_hash = self._compute_file_hash(file_path)
        df = self._read_csv(config)

        missing = self._validate_columns(df, config.table)
        if missing:
            logger.error("Seed file is missing columns", table=config.table, missing=missing)
            raise SeedLoadError(config.table, f"missing required columns: {missing}")

        # Keep the declared column order, drop anything extra
        df = df.select(SEED_COLUMNS.get(config.table, df.columns))

        completed_at = datetime.utcnow()
        result.status = LoadStatus.COMPLETED
        result.rows_loaded = len(df)
        result.completed_at = completed_at
        result.load_duration_seconds = (completed_at - started_at).total_seconds()

        logger.info(
            "Seed loaded",
            table=config.table,
            rows=result.rows_loaded,
            file_hash=result.file_hash,
        )

        return df, result

    def load_all(self) -> Tuple[Dict[str, pl.DataFrame], List[LoadResult]]:
        """Load every seed table from the seeds directory"""
        tables: Dict[str, pl.DataFrame] = {}
        results: List[LoadResult] = []

        for table in SEED_COLUMNS:
            df, result = self.load(self.config_for(table))
            tables[table] = df
            results.append(result)

        return tables, results


def load_seeds(seeds_path: Optional[Union[str, Path]] = None) -> Dict[str, pl.DataFrame]:
    """
    Convenience function to read all raw seed tables.

    Args:
        seeds_path: Seeds directory (defaults to the configured path)

    Returns:
        Mapping of raw table name to DataFrame
    """
    tables, _ = SeedLoader(seeds_path).load_all()
    return tables
