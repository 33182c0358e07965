from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..models.product import Product, ProductVariants, ProductVisibility
from ..services.classifier import classify

"""Column mapping and cell coercion: raw row -> Product.

Only headers listed in COLUMN_MAP are meaningful; any other column is ignored
so that exports with extra columns keep importing. Malformed cells never fail
the row: numbers degrade to 0.0, text to "", optional variants to absent.
"""

__all__ = [
    "FieldKind",
    "ColumnTarget",
    "COLUMN_MAP",
    "coerce_cell",
    "parse_number",
    "normalize_row",
    "normalize_rows",
]


class FieldKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    VARIANT = "variant"  # ProductVariants attribute, absent when empty
    VISIBILITY = "visibility"  # ProductVisibility attribute


@dataclass(frozen=True)
class ColumnTarget:
    kind: FieldKind
    field: str  # Product / ProductVariants / ProductVisibility attribute name


COLUMN_MAP: dict[str, ColumnTarget] = {
    "code": ColumnTarget(FieldKind.TEXT, "code"),
    "pairCode": ColumnTarget(FieldKind.TEXT, "pair_code"),
    "name": ColumnTarget(FieldKind.TEXT, "name"),
    "price": ColumnTarget(FieldKind.NUMBER, "price"),
    "priceRatio": ColumnTarget(FieldKind.NUMBER, "price_ratio"),
    "standardPrice": ColumnTarget(FieldKind.NUMBER, "standard_price"),
    "purchasePrice": ColumnTarget(FieldKind.NUMBER, "purchase_price"),
    "includingVat": ColumnTarget(FieldKind.BOOLEAN, "including_vat"),
    "percentVat": ColumnTarget(FieldKind.NUMBER, "percent_vat"),
    "relativeMargin": ColumnTarget(FieldKind.NUMBER, "relative_margin"),
    "absoluteMargin": ColumnTarget(FieldKind.NUMBER, "absolute_margin"),
    "variant:Barva": ColumnTarget(FieldKind.VARIANT, "color"),
    "variant:Díl": ColumnTarget(FieldKind.VARIANT, "part"),
    "variant:PDF": ColumnTarget(FieldKind.VARIANT, "pdf"),
    "variant:TISK": ColumnTarget(FieldKind.VARIANT, "print"),
    "variant:Velikost": ColumnTarget(FieldKind.VARIANT, "size"),
    "variant:barevná": ColumnTarget(FieldKind.VARIANT, "colored"),
    "variant:černobílá": ColumnTarget(FieldKind.VARIANT, "monochrome"),
    "variantVisibility": ColumnTarget(FieldKind.VISIBILITY, "variant"),
    "productVisibility": ColumnTarget(FieldKind.VISIBILITY, "product"),
}

# leading float literal, e.g. "12.5 Kč" -> 12.5, "1e3x" -> 1000.0
_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:inf(?:inity)?|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)", re.IGNORECASE)


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, float) and math.isnan(value)


def parse_number(value: Any) -> float:
    """Parse a cell as float; anything unparsable or non-finite becomes 0.0.

    Numbers pass through as-is. Text uses a decimal comma tolerant parse
    (first comma replaced by a point) and accepts a leading numeric prefix.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        result = float(value)
    else:
        text = str(value).replace(",", ".", 1)
        match = _NUMBER_PREFIX.match(text)
        if match is None:
            return 0.0
        try:
            result = float(match.group(0))
        except ValueError:
            return 0.0
    return result if math.isfinite(result) else 0.0


def _to_text(value: Any) -> str:
    # pandas は数値コード列を float で返す (123 -> 123.0)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_cell(value: Any, kind: FieldKind) -> Any:
    """Coerce one raw cell for the given target kind."""
    if _is_empty(value):
        if kind is FieldKind.NUMBER:
            return 0.0
        if kind is FieldKind.BOOLEAN:
            return False
        if kind is FieldKind.VARIANT:
            return None
        return ""

    if kind is FieldKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        return value == "true" or value == "1" or (isinstance(value, (int, float)) and value == 1)
    if kind is FieldKind.NUMBER:
        return parse_number(value)
    return _to_text(value)


def normalize_row(row: Mapping[str, Any], headers: Iterable[str] | None = None) -> Product:
    """Map a raw row to a Product and classify it.

    ``headers`` is the sheet's header list; when omitted the row's own keys
    are used. Unknown headers are skipped silently.
    """
    values: dict[str, Any] = {}
    variants: dict[str, str | None] = {}
    visibility: dict[str, str] = {}

    for header in (row.keys() if headers is None else headers):
        target = COLUMN_MAP.get(header)
        if target is None:
            continue
        raw = row.get(header)
        value = coerce_cell(raw, target.kind)
        if target.field == "relative_margin":
            values["margin_supplied"] = not _is_empty(raw)
        if target.kind is FieldKind.VARIANT:
            variants[target.field] = value
        elif target.kind is FieldKind.VISIBILITY:
            visibility[target.field] = value
        else:
            values[target.field] = value

    code = values.get("code", "")
    name = values.get("name", "")
    return Product(
        **values,
        variants=ProductVariants(**variants),
        visibility=ProductVisibility(**visibility),
        product_type=classify(code, name),
    )


def normalize_rows(rows: Iterable[Mapping[str, Any]], headers: Iterable[str] | None = None) -> list[Product]:
    """Normalize every row; header order comes from ``headers`` or each row."""
    header_list = list(headers) if headers is not None else None
    return [normalize_row(row, header_list) for row in rows]
