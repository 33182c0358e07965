from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, fields, replace
from typing import Any

from ..models.product import Product, ProductType, ProductVariants
from .calculations import effective_margin

"""Product view helpers: search, filters, sorting, filter options.

Filter state is an immutable ProductFilter snapshot; every helper is a pure
function over a product sequence. Within one filter group (variants or
visibility) a product matches if ANY active pair matches; groups combine
with AND. A non-empty selected_codes set restricts the view to exactly those
product codes.
"""

__all__ = [
    "MARGIN_SORT_FIELD",
    "ProductFilter",
    "filter_products",
    "sort_products",
    "variant_options",
    "visibility_options",
    "product_types",
]

MARGIN_SORT_FIELD = "margin"
VARIANT_KEYS = tuple(f.name for f in fields(ProductVariants))
VISIBILITY_KEYS = ("variant", "product")
_SORTABLE_FIELDS = frozenset(f.name for f in fields(Product)) - {"variants", "visibility"}


@dataclass(frozen=True)
class ProductFilter:
    """Snapshot of the active filters. The default matches everything."""
    search: str = ""
    variant_filters: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    visibility_filters: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    product_type: ProductType | None = None
    selected_codes: frozenset[str] = field(default_factory=frozenset)  # 選択した商品コード

    def toggle_variant(self, key: str, value: str) -> ProductFilter:
        """Return a copy with (key, value) added, or removed if already active."""
        return replace(self, variant_filters=self.variant_filters ^ {(key, value)})

    def toggle_visibility(self, key: str, value: str) -> ProductFilter:
        return replace(self, visibility_filters=self.visibility_filters ^ {(key, value)})

    def toggle_code(self, code: str) -> ProductFilter:
        return replace(self, selected_codes=self.selected_codes ^ {code})

    @property
    def is_active(self) -> bool:
        return bool(
            self.search
            or self.variant_filters
            or self.visibility_filters
            or self.product_type
            or self.selected_codes
        )


def _matches(product: Product, flt: ProductFilter) -> bool:
    if flt.selected_codes and product.code not in flt.selected_codes:
        return False
    if flt.search:
        needle = flt.search.lower()
        if needle not in (product.code or "").lower() and needle not in (product.name or "").lower():
            return False
    if flt.variant_filters and not any(
        getattr(product.variants, key, None) == value for key, value in flt.variant_filters
    ):
        return False
    if flt.visibility_filters and not any(
        key in VISIBILITY_KEYS and getattr(product.visibility, key) == value
        for key, value in flt.visibility_filters
    ):
        return False
    if flt.product_type is not None and product.product_type is not flt.product_type:
        return False
    return True


def filter_products(products: Iterable[Product], flt: ProductFilter | None = None) -> list[Product]:
    """Products matching ``flt``, in input order."""
    if flt is None or not flt.is_active:
        return list(products)
    return [p for p in products if _matches(p, flt)]


def _sort_key(product: Product, sort_field: str) -> Any:
    if sort_field == MARGIN_SORT_FIELD:
        return effective_margin(product)
    value = getattr(product, sort_field)
    if isinstance(value, ProductType):
        return value.value
    if isinstance(value, str):
        return value.lower()
    return value


def sort_products(
    products: Iterable[Product], sort_field: str = MARGIN_SORT_FIELD, *, descending: bool = False
) -> list[Product]:
    """Stable sort by a Product attribute or by effective margin ("margin").

    Strings compare case-insensitively.
    """
    if sort_field != MARGIN_SORT_FIELD and sort_field not in _SORTABLE_FIELDS:
        raise ValueError(f"unknown sort field: {sort_field}")
    return sorted(products, key=lambda p: _sort_key(p, sort_field), reverse=descending)


def variant_options(products: Sequence[Product]) -> dict[str, set[str]]:
    """Distinct non-empty values per variant attribute."""
    options: dict[str, set[str]] = {key: set() for key in VARIANT_KEYS}
    for product in products:
        for key, value in product.variants.items():
            if value:
                options[key].add(value)
    return options


def visibility_options(products: Sequence[Product]) -> dict[str, set[str]]:
    """Distinct non-empty values per visibility attribute."""
    options: dict[str, set[str]] = {key: set() for key in VISIBILITY_KEYS}
    for product in products:
        for key in VISIBILITY_KEYS:
            value = getattr(product.visibility, key)
            if value:
                options[key].add(value)
    return options


def product_types(products: Sequence[Product]) -> set[ProductType]:
    return {p.product_type for p in products}
