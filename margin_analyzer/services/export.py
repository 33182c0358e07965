from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from ..models.product import Product

"""CSV export of a product subset (selected or filtered products)."""

__all__ = [
    "EXPORT_COLUMNS",
    "products_to_frame",
    "export_to_csv",
]

EXPORT_COLUMNS = [
    "code",
    "name",
    "purchasePrice",
    "price",
    "relativeMargin",
    "absoluteMargin",
]


def products_to_frame(products: Iterable[Product]) -> pd.DataFrame:
    records = []
    for p in products:
        data = p.to_dict()
        records.append({col: data[col] for col in EXPORT_COLUMNS})
    return pd.DataFrame.from_records(records, columns=EXPORT_COLUMNS)


def export_to_csv(products: Iterable[Product], path: Path) -> Path:
    """Write products to ``path`` as UTF-8 CSV with a header row."""
    path.parent.mkdir(parents=True, exist_ok=True)
    products_to_frame(products).to_csv(path, index=False, encoding="utf-8")
    return path
