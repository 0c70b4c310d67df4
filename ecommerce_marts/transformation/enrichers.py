"""
Data Enrichment Module

Intermediate models built on the staging layer:
- int_order_items: order lines joined to products with revenue, cost and margin
- int_customer_orders: lifetime order metrics per customer

Only completed and returned lines are billable. Returned lines keep their
positive revenue, cost and margin; refunds are not netted.
"""

from typing import List

import polars as pl
import structlog

from .cleaners import CURRENCY, check_currency_range

logger = structlog.get_logger(__name__)


BILLABLE_STATUSES = ["completed", "returned"]

ORDER_ITEM_COLUMNS = [
    "order_id",
    "customer_id",
    "product_id",
    "product_name",
    "category",
    "quantity",
    "unit_price",
    "order_date",
    "status",
    "revenue",
    "cost",
    "margin",
]

CUSTOMER_ORDER_COLUMNS = [
    "customer_id",
    "customer_name",
    "email",
    "region",
    "signup_date",
    "order_count",
    "total_revenue",
    "total_quantity",
]


class DataEnricher:
    """
    Builds the intermediate layer.

    Example:
        enricher = DataEnricher()
        items = enricher.build_order_items(stg_orders, stg_products)
        customers = enricher.aggregate_customer_orders(stg_customers, items)
    """

    def __init__(self, billable_statuses: List[str] = None):
        self.billable_statuses = billable_statuses or BILLABLE_STATUSES

    def build_order_items(
        self,
        orders_df: pl.DataFrame,
        products_df: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Join order lines to products and compute line financials.

        Lines whose product is unknown drop out of the inner join; the
        relationships test on stg_orders reports them.

        Args:
            orders_df: stg_orders
            products_df: stg_products

        Returns:
            int_order_items, one row per billable order line
        """
        items = orders_df.join(
            products_df.select(["product_id", "product_name", "category", "unit_cost"]),
            on="product_id",
            how="inner",
        )

        items = items.filter(pl.col("status").is_in(self.billable_statuses))

        items = items.with_columns([
            (pl.col("quantity") * pl.col("unit_price")).alias("revenue"),
            (pl.col("quantity") * pl.col("unit_cost")).alias("cost"),
        ])
        items = items.with_columns(
            (pl.col("revenue") - pl.col("cost")).alias("margin")
        )
        items = check_currency_range(
            items, ["revenue", "cost", "margin"], "int_order_items", ["order_id"]
        )

        items = items.select(ORDER_ITEM_COLUMNS).sort(["order_id", "product_id"])

        logger.info(
            "Built order items",
            model="int_order_items",
            input_rows=len(orders_df),
            rows=len(items),
            excluded=len(orders_df) - len(items),
        )

        return items

    def aggregate_customer_orders(
        self,
        customers_df: pl.DataFrame,
        order_items_df: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Aggregate billable lines per customer.

        Every customer is kept; customers without billable lines get zero
        order_count, total_revenue and total_quantity.

        Args:
            customers_df: stg_customers
            order_items_df: int_order_items

        Returns:
            int_customer_orders, one row per customer
        """
        customer_metrics = order_items_df.group_by("customer_id").agg([
            pl.col("order_id").n_unique().cast(pl.Int64).alias("order_count"),
            pl.col("revenue").sum().alias("total_revenue"),
            pl.col("quantity").sum().cast(pl.Int64).alias("total_quantity"),
        ])
        customer_metrics = check_currency_range(
            customer_metrics, ["total_revenue"], "int_customer_orders", ["customer_id"]
        )

        customers = customers_df.join(
            customer_metrics,
            on="customer_id",
            how="left",
        )

        # Fill nulls for customers with no billable orders
        customers = customers.with_columns([
            pl.col("order_count").fill_null(0),
            pl.col("total_revenue").fill_null(pl.lit(0).cast(CURRENCY)),
            pl.col("total_quantity").fill_null(0),
        ])

        customers = customers.select(CUSTOMER_ORDER_COLUMNS).sort("customer_id")

        logger.info(
            "Aggregated customer orders",
            model="int_customer_orders",
            rows=len(customers),
            customers_without_orders=customers.filter(pl.col("order_count") == 0).height,
        )

        return customers


def enrich_order_data(
    orders_df: pl.DataFrame,
    products_df: pl.DataFrame,
) -> pl.DataFrame:
    """
    Convenience function to build int_order_items.

    Args:
        orders_df: stg_orders
        products_df: stg_products

    Returns:
        Enriched order lines
    """
    return DataEnricher().build_order_items(orders_df, products_df)


def enrich_customer_data(
    customers_df: pl.DataFrame,
    order_items_df: pl.DataFrame,
) -> pl.DataFrame:
    """
    Convenience function to build int_customer_orders.

    Args:
        customers_df: stg_customers
        order_items_df: int_order_items

    Returns:
        Customer aggregates
    """
    return DataEnricher().aggregate_customer_orders(customers_df, order_items_df)
