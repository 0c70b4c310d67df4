"""
Unit Tests - Seed Loading
"""
import pytest
import polars as pl

from ecommerce_marts.ingestion import SeedFileConfig, SeedLoader, SeedLoadError, load_seeds
from ecommerce_marts.ingestion.seed_loader import SEED_COLUMNS, LoadStatus


def _write_seeds(path, **overrides):
    """Write a minimal valid seed directory; overrides replace file contents"""
    path.mkdir(parents=True, exist_ok=True)
    contents = {
        "raw_customers": "customer_id,customer_name,email,region,signup_date\n1,Ann,ann@example.com,North,2024-01-01\n",
        "raw_orders": (
            "order_id,customer_id,product_id,quantity,unit_price,order_date,status\n"
            "1,1,1,2,10.00,2024-02-01,completed\n"
        ),
        "raw_products": "product_id,product_name,category,unit_cost\n1,Widget,widgets,4.00\n",
    }
    contents.update(overrides)
    for table, text in contents.items():
        if text is not None:
            (path / f"{table}.csv").write_text(text, encoding="utf-8")
    return path


class TestSeedLoader:
    """Tests for SeedLoader"""

    def test_load_packaged_seeds(self, seeds_path):
        """Test the shipped seeds load with every declared column"""
        tables, results = SeedLoader(seeds_path).load_all()

        assert sorted(tables) == sorted(SEED_COLUMNS)
        assert len(tables["raw_orders"]) == 15
        for table, df in tables.items():
            assert df.columns == SEED_COLUMNS[table]
        assert all(r.status == LoadStatus.COMPLETED for r in results)
        assert all(r.file_hash for r in results)

    def test_columns_read_as_text(self, seeds_path):
        """Test values reach staging untyped and unstripped"""
        tables = load_seeds(seeds_path)

        assert all(dtype == pl.Utf8 for dtype in tables["raw_orders"].dtypes)
        assert " 3 " in tables["raw_orders"]["quantity"].to_list()

    def test_missing_file(self, tmp_path):
        seeds = _write_seeds(tmp_path / "seeds", raw_products=None)

        with pytest.raises(SeedLoadError) as exc_info:
            SeedLoader(seeds).load_all()

        assert exc_info.value.table == "raw_products"

    def test_missing_column(self, tmp_path):
        seeds = _write_seeds(
            tmp_path / "seeds",
            raw_products="product_id,product_name,unit_cost\n1,Widget,4.00\n",
        )

        with pytest.raises(SeedLoadError, match="category"):
            SeedLoader(seeds).load_all()

    def test_extra_columns_dropped(self, tmp_path):
        seeds = _write_seeds(
            tmp_path / "seeds",
            raw_products="product_id,supplier,product_name,category,unit_cost\n1,Acme,Widget,widgets,4.00\n",
        )

        tables = load_seeds(seeds)

        assert tables["raw_products"].columns == SEED_COLUMNS["raw_products"]

    def test_custom_delimiter(self, tmp_path):
        path = tmp_path / "products.tsv"
        path.write_text("product_id\tproduct_name\tcategory\tunit_cost\n1\tWidget\twidgets\t4.00\n")

        df, result = SeedLoader(tmp_path).load(
            SeedFileConfig(file_path=path, table="raw_products", delimiter="\t")
        )

        assert df["product_name"].to_list() == ["Widget"]
        assert result.rows_loaded == 1
