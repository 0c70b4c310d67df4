"""
Synthetic Seed Generator
Writes raw_customers.csv, raw_products.csv and raw_orders.csv in the seed
layout so the pipeline can be run against a larger dataset:

    python scripts/generate_dataset.py --orders 100000 --output data/seeds_large
    ecommerce-marts build --seeds-path data/seeds_large
"""

import argparse
from pathlib import Path

from ecommerce_marts.data import RawDataGenerator

DEFAULT_OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate synthetic raw seeds")
    parser.add_argument("--customers", type=int, default=1000, help="Number of customers")
    parser.add_argument("--products", type=int, default=50, help="Number of products")
    parser.add_argument("--orders", type=int, default=10000, help="Number of order lines")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT_DIR, help="Output directory")
    args = parser.parse_args()

    generator = RawDataGenerator(seed=args.seed)
    tables = generator.generate(
        customers=args.customers,
        products=args.products,
        orders=args.orders,
    )
    paths = generator.write_seeds(tables, args.output)

    for table, path in paths.items():
        print(f"   {table}: {len(tables[table]):,} rows -> {path}")


if __name__ == "__main__":
    main()
