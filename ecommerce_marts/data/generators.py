"""
Synthetic Seed Generator

Generates raw customer, product and order seeds in the same text layout as
the shipped seed files, for demos and larger pipeline runs. Values carry
the kind of noise the staging models clean up: padded whitespace, mixed
case emails and statuses.
"""

import random
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import polars as pl
from faker import Faker
import structlog

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = {
    "widgets": (10.0, 60.0),
    "gadgets": (40.0, 250.0),
    "gizmos": (80.0, 400.0),
    "accessories": (5.0, 40.0),
}

REGIONS = ["North", "South", "East", "West"]

ORDER_STATUSES = [
    ("completed", 0.70),
    ("pending", 0.10),
    ("cancelled", 0.10),
    ("returned", 0.10),
]


class RawDataGenerator:
    """
    Generate raw seed tables.

    Example:
        generator = RawDataGenerator(seed=42)
        tables = generator.generate(customers=100, products=20, orders=1000)
        generator.write_seeds(tables, "data/seeds_large")
    """

    def __init__(
        self,
        seed: int = 42,
        noise_rate: float = 0.2,
        start_date: date = date(2024, 1, 1),
        days: int = 90,
    ):
        self.noise_rate = noise_rate
        self.start_date = start_date
        self.days = days
        self._random = random.Random(seed)
        self._rng = np.random.default_rng(seed)
        self._fake = Faker()
        self._fake.seed_instance(seed)

    def _noisy(self, value: str) -> str:
        """Randomly pad or re-case a text value"""
        if self._random.random() >= self.noise_rate:
            return value
        choice = self._random.choice(["pad", "upper", "title"])
        if choice == "pad":
            return f"  {value} "
        if choice == "upper":
            return value.upper()
        return value.title()

    def generate_customers(self, n: int = 100) -> pl.DataFrame:
        """Generate n raw customers"""
        customers = []

        for customer_id in range(1, n + 1):
            signup = self.start_date - timedelta(days=self._random.randint(0, 365))
            customers.append({
                "customer_id": str(customer_id),
                "customer_name": self._noisy(self._fake.name()),
                "email": self._noisy(self._fake.unique.email()),
                "region": self._random.choice(REGIONS),
                "signup_date": signup.isoformat(),
            })

        return pl.DataFrame(customers)

    def generate_products(self, n: int = 20) -> pl.DataFrame:
        """Generate n raw products"""
        products = []

        for product_id in range(1, n + 1):
            category = self._random.choice(list(CATEGORIES))
            low, high = CATEGORIES[category]
            unit_cost = round(self._random.uniform(low, high), 2)

            products.append({
                "product_id": str(product_id),
                "product_name": self._noisy(f"{self._fake.word().title()} {product_id}"),
                "category": category,
                "unit_cost": f"{unit_cost:.2f}",
            })

        return pl.DataFrame(products)

    def generate_orders(
        self,
        customers_df: pl.DataFrame,
        products_df: pl.DataFrame,
        n: int = 1000,
        first_order_id: int = 1001,
    ) -> pl.DataFrame:
        """Generate n raw order lines referencing the given customers and products"""
        customer_ids = customers_df["customer_id"].to_list()
        costs = dict(zip(
            products_df["product_id"].to_list(),
            [float(c) for c in products_df["unit_cost"].to_list()],
        ))
        product_ids = list(costs)

        statuses = self._rng.choice(
            [s for s, _ in ORDER_STATUSES],
            size=n,
            p=[w for _, w in ORDER_STATUSES],
        )
        quantities = self._rng.integers(1, 6, size=n)
        markups = self._rng.uniform(1.2, 2.5, size=n)
        day_offsets = self._rng.integers(0, self.days, size=n)

        orders = []
        for i in range(n):
            product_id = self._random.choice(product_ids)
            unit_price = round(costs[product_id] * float(markups[i]), 2)
            order_date = self.start_date + timedelta(days=int(day_offsets[i]))

            orders.append({
                "order_id": str(first_order_id + i),
                "customer_id": self._random.choice(customer_ids),
                "product_id": product_id,
                "quantity": str(int(quantities[i])),
                "unit_price": f"{unit_price:.2f}",
                "order_date": order_date.isoformat(),
                "status": self._noisy(str(statuses[i])),
            })

        return pl.DataFrame(orders)

    def generate(
        self,
        customers: int = 100,
        products: int = 20,
        orders: int = 1000,
    ) -> Dict[str, pl.DataFrame]:
        """Generate all three raw tables"""
        customers_df = self.generate_customers(customers)
        products_df = self.generate_products(products)
        orders_df = self.generate_orders(customers_df, products_df, orders)

        logger.info(
            "Generated raw seeds",
            customers=len(customers_df),
            products=len(products_df),
            orders=len(orders_df),
        )

        return {
            "raw_customers": customers_df,
            "raw_products": products_df,
            "raw_orders": orders_df,
        }

    def write_seeds(
        self,
        tables: Dict[str, pl.DataFrame],
        output_dir: Union[str, Path],
    ) -> Dict[str, str]:
        """Write raw tables as seed CSVs"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = {}
        for table, df in tables.items():
            path = output_dir / f"{table}.csv"
            df.write_csv(path)
            paths[table] = str(path)

        return paths
