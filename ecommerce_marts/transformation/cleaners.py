"""
Data Cleaning Module

Staging transformations for the raw seed tables. Each raw record becomes
exactly one standardized record:
- Whitespace trimming on text fields
- Case normalization (customer email, order status)
- Currency normalization to a fixed 2-decimal type
- Integer and date casting

Nothing is filtered here. A value that cannot be cast aborts the run with
a DataCastError naming the offending records.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


CURRENCY = pl.Decimal(precision=18, scale=2)
CURRENCY_MAX = Decimal("9999999999999999.99")
DATE_FORMAT = "%Y-%m-%d"

# Non-zero digits beyond the second decimal place
EXCESS_PRECISION_PATTERN = r"\.\d{2}\d*[1-9]$"

ORDER_STATUSES = ["completed", "pending", "cancelled", "returned"]

STG_CUSTOMERS_SCHEMA = {
    "customer_id": pl.Int64,
    "customer_name": pl.Utf8,
    "email": pl.Utf8,
    "region": pl.Utf8,
    "signup_date": pl.Date,
}

STG_ORDERS_SCHEMA = {
    "order_id": pl.Int64,
    "customer_id": pl.Int64,
    "product_id": pl.Int64,
    "quantity": pl.Int64,
    "unit_price": CURRENCY,
    "order_date": pl.Date,
    "status": pl.Utf8,
}

STG_PRODUCTS_SCHEMA = {
    "product_id": pl.Int64,
    "product_name": pl.Utf8,
    "category": pl.Utf8,
    "unit_cost": CURRENCY,
}


@dataclass
class CastFailure:
    """A single value that could not be cast"""
    column: str
    record_id: Optional[str]
    value: str


class DataCastError(ValueError):
    """Raised when raw values cannot be cast to their declared types"""

    def __init__(self, model: str, failures: List[CastFailure]):
        self.model = model
        self.failures = failures
        details = ", ".join(
            f"{f.column}={f.value!r} (record {f.record_id})" for f in failures[:10]
        )
        more = f" and {len(failures) - 10} more" if len(failures) > 10 else ""
        super().__init__(f"{model}: {len(failures)} value(s) could not be cast: {details}{more}")

    @property
    def record_ids(self) -> List[Optional[str]]:
        """Identifiers of the offending records"""
        return [f.record_id for f in self.failures]


@dataclass
class CleaningStats:
    """Statistics from cleaning operations"""
    model: str
    total_rows: int
    rows_after_cleaning: int
    format_corrections: int


class DataCleaner:
    """
    Staging cleaner for raw customers, orders and products.

    Example:
        cleaner = DataCleaner()
        stg_orders = cleaner.clean_orders(raw_orders)
    """

    def __init__(self, date_format: str = DATE_FORMAT):
        self.date_format = date_format
        self._stats: List[CleaningStats] = []

    @property
    def stats(self) -> List[CleaningStats]:
        """Statistics collected by the clean_* methods"""
        return list(self._stats)

    def _trim_strings(self, df: pl.DataFrame, columns: Optional[List[str]] = None) -> pl.DataFrame:
        """Trim whitespace from string columns; blank strings become null"""
        string_cols = columns or [
            col for col, dtype in zip(df.columns, df.dtypes)
            if dtype == pl.Utf8
        ]

        for col in string_cols:
            if col in df.columns:
                trimmed = pl.col(col).str.strip_chars()
                df = df.with_columns(
                    pl.when(trimmed == "").then(None).otherwise(trimmed).alias(col)
                )

        return df

    def _normalize_case(
        self,
        df: pl.DataFrame,
        columns: List[str],
        case: str = "lower"
    ) -> pl.DataFrame:
        """Normalize string case"""
        for col in columns:
            if col in df.columns:
                if case == "lower":
                    df = df.with_columns(pl.col(col).str.to_lowercase().alias(col))
                elif case == "upper":
                    df = df.with_columns(pl.col(col).str.to_uppercase().alias(col))
                elif case == "title":
                    df = df.with_columns(pl.col(col).str.to_titlecase().alias(col))

        return df

    def _normalize_currency(
        self,
        df: pl.DataFrame,
        amount_columns: List[str]
    ) -> pl.DataFrame:
        """Remove currency symbols and thousands separators ahead of casting"""
        for col in amount_columns:
            if col in df.columns:
                df = df.with_columns(
                    pl.col(col)
                    .str.replace_all(r"[$€£¥,]", "")
                    .str.strip_chars()
                    .alias(col)
                )

        return df

    def _cast_expr(self, column: str, dtype: Any) -> pl.Expr:
        """Non-strict cast expression; failures surface as nulls"""
        if dtype == pl.Date:
            return pl.col(column).str.to_date(self.date_format, strict=False)
        return pl.col(column).cast(dtype, strict=False)

    def _cast_columns(
        self,
        df: pl.DataFrame,
        schema: Dict[str, Any],
        model: str,
        key_column: str,
    ) -> pl.DataFrame:
        """
        Cast text columns to their declared types.

        Args:
            df: Trimmed text DataFrame
            schema: Target dtype per column
            model: Model name used in error reports
            key_column: Column identifying a record in error reports

        Raises:
            DataCastError: One or more non-null values failed to cast
        """
        text_cols = [
            col for col, dtype in schema.items()
            if col in df.columns and dtype != pl.Utf8 and df[col].dtype == pl.Utf8
        ]

        casted = df.with_columns([
            self._cast_expr(col, schema[col]).alias(f"__cast_{col}") for col in text_cols
        ])

        failures: List[CastFailure] = []
        for col in text_cols:
            invalid = pl.col(col).is_not_null() & pl.col(f"__cast_{col}").is_null()
            if schema[col] == CURRENCY:
                # a cast would silently round the extra digits
                invalid = invalid | pl.col(col).str.contains(EXCESS_PRECISION_PATTERN).fill_null(False)

            bad = casted.filter(invalid).select([
                pl.col(key_column).alias("__record_id"),
                pl.col(col).alias("__raw_value"),
            ])
            for row in bad.iter_rows(named=True):
                record_id = row["__record_id"]
                failures.append(CastFailure(
                    column=col,
                    record_id=None if record_id is None else str(record_id),
                    value=row["__raw_value"],
                ))

        if failures:
            logger.error(
                "Type cast failed",
                model=model,
                failures=len(failures),
                columns=sorted({f.column for f in failures}),
                record_ids=[f.record_id for f in failures],
            )
            raise DataCastError(model, failures)

        return casted.with_columns([
            pl.col(f"__cast_{col}").alias(col) for col in text_cols
        ]).select([
            pl.col(col).cast(dtype) for col, dtype in schema.items()
        ])

    def _count_corrections(self, before: pl.DataFrame, after: pl.DataFrame, columns: List[str]) -> int:
        """Count text values changed by trimming or case normalization"""
        corrections = 0
        for col in columns:
            if col in before.columns and col in after.columns:
                corrections += before.select(
                    (pl.col(col) != after[col]).fill_null(False).sum()
                ).item()
        return corrections

    def _record_stats(self, model: str, raw: pl.DataFrame, cleaned: pl.DataFrame, corrections: int) -> None:
        stats = CleaningStats(
            model=model,
            total_rows=len(raw),
            rows_after_cleaning=len(cleaned),
            format_corrections=corrections,
        )
        self._stats.append(stats)
        logger.info(
            "Staging model cleaned",
            model=model,
            rows=stats.rows_after_cleaning,
            format_corrections=corrections,
        )

    def clean_customers(self, df: pl.DataFrame) -> pl.DataFrame:
        """Build stg_customers from raw customers"""
        text = self._trim_strings(df)
        text = self._normalize_case(text, ["email"], "lower")
        corrections = self._count_corrections(df, text, ["customer_name", "email", "region"])

        cleaned = self._cast_columns(text, STG_CUSTOMERS_SCHEMA, "stg_customers", "customer_id")
        self._record_stats("stg_customers", df, cleaned, corrections)
        return cleaned

    def clean_orders(self, df: pl.DataFrame) -> pl.DataFrame:
        """Build stg_orders from raw orders"""
        text = self._trim_strings(df)
        text = self._normalize_case(text, ["status"], "lower")
        corrections = self._count_corrections(df, text, ["status"])
        text = self._normalize_currency(text, ["unit_price"])

        cleaned = self._cast_columns(text, STG_ORDERS_SCHEMA, "stg_orders", "order_id")
        self._record_stats("stg_orders", df, cleaned, corrections)
        return cleaned

    def clean_products(self, df: pl.DataFrame) -> pl.DataFrame:
        """Build stg_products from raw products"""
        text = self._trim_strings(df)
        corrections = self._count_corrections(df, text, ["product_name", "category"])
        text = self._normalize_currency(text, ["unit_cost"])

        cleaned = self._cast_columns(text, STG_PRODUCTS_SCHEMA, "stg_products", "product_id")
        self._record_stats("stg_products", df, cleaned, corrections)
        return cleaned


def check_currency_range(
    df: pl.DataFrame,
    columns: List[str],
    model: str,
    key_columns: Optional[List[str]] = None,
) -> pl.DataFrame:
    """
    Cast computed amounts to CURRENCY, rejecting values it cannot hold.

    Args:
        df: Frame with amounts computed at a wider precision
        columns: Amount columns to cast
        model: Model name used in error reports
        key_columns: Columns identifying a record in error reports

    Raises:
        DataCastError: An amount overflows the currency type
    """
    upper, lower = pl.lit(CURRENCY_MAX), pl.lit(-CURRENCY_MAX)
    key_columns = key_columns or []

    failures: List[CastFailure] = []
    for col in columns:
        overflow = df.filter((pl.col(col) > upper) | (pl.col(col) < lower))
        for row in overflow.select(key_columns + [col]).iter_rows():
            failures.append(CastFailure(
                column=col,
                record_id="/".join(str(v) for v in row[:-1]) or None,
                value=str(row[-1]),
            ))

    if failures:
        logger.error(
            "Amount overflow",
            model=model,
            failures=len(failures),
            columns=sorted({f.column for f in failures}),
            record_ids=[f.record_id for f in failures],
        )
        raise DataCastError(model, failures)

    return df.with_columns([pl.col(col).cast(CURRENCY) for col in columns])


def clean_dataframe(
    df: pl.DataFrame,
    data_type: str,
) -> pl.DataFrame:
    """
    Convenience function to clean a raw DataFrame.

    Args:
        df: Raw text DataFrame
        data_type: "orders", "customers" or "products"

    Returns:
        Cleaned DataFrame
    """
    cleaner = DataCleaner()

    if data_type == "orders":
        return cleaner.clean_orders(df)
    elif data_type == "customers":
        return cleaner.clean_customers(df)
    elif data_type == "products":
        return cleaner.clean_products(df)
    raise ValueError(f"Unknown data type: {data_type}")
