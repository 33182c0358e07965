from __future__ import annotations

import math

from ..models.analysis import (
    HIGH_MARGIN_THRESHOLD,
    LOW_MARGIN_THRESHOLD,
    CalculatedMargin,
    MarginHealth,
)
from ..models.product import Product

"""Margin calculator.

Pure arithmetic on prices. Boundary cases are answered with guard values
instead of exceptions:

- margin of a non-positive price is 0
- a target margin of 100% or more needs an infinite price (math.inf)
- a target margin of 0% or less leaves the purchase price unchanged
"""

__all__ = [
    "margin_from_price",
    "price_for_target_margin",
    "effective_margin",
    "margin_for_target",
    "margin_health",
]


def margin_from_price(price: float, purchase_price: float) -> float:
    """Margin in percent of the selling price: (price - cost) / price * 100.

    Negative when the purchase price exceeds the selling price.

    >>> margin_from_price(200, 50)
    75.0
    >>> margin_from_price(0, 40)
    0.0
    """
    if price <= 0:
        return 0.0
    return ((price - purchase_price) / price) * 100


def price_for_target_margin(purchase_price: float, target_fraction: float) -> float:
    """Selling price that yields ``target_fraction`` (0-1) margin on ``purchase_price``.

    >>> price_for_target_margin(40, 0.5)
    80.0
    >>> price_for_target_margin(40, 1)
    inf
    """
    if target_fraction >= 1:
        return math.inf
    if target_fraction <= 0:
        return purchase_price
    return purchase_price / (1 - target_fraction)


def effective_margin(product: Product) -> float:
    """Spreadsheet-supplied relative margin when finite, else the derived one.

    A relative_margin that did not come from the source (margin_supplied is
    False) is a 0.0 placeholder and is ignored.
    """
    if product.margin_supplied and math.isfinite(product.relative_margin):
        return float(product.relative_margin)
    return margin_from_price(product.price or 0.0, product.purchase_price or 0.0)


def margin_for_target(product: Product, target_percent: float) -> CalculatedMargin:
    """Project the price change needed to reach ``target_percent`` (whole percent)."""
    new_price = price_for_target_margin(product.purchase_price, target_percent / 100)
    price_change = new_price - product.price
    if product.price > 0:
        price_change_percent = (price_change / product.price) * 100
    else:
        price_change_percent = 0.0
    return CalculatedMargin(
        target_percentage=target_percent,
        new_price=new_price,
        price_change=price_change,
        price_change_percent=price_change_percent,
    )


def margin_health(margin: float) -> MarginHealth:
    """Classify a margin with the same thresholds the summary buckets use.

    NaN is classified as LOW.
    """
    if not margin >= LOW_MARGIN_THRESHOLD:
        return MarginHealth.LOW
    if margin < HIGH_MARGIN_THRESHOLD:
        return MarginHealth.MEDIUM
    return MarginHealth.GOOD
