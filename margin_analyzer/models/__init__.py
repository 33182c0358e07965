"""Domain models for the margin analyzer.

Products and analyses are frozen dataclasses; every numeric product field is
a finite float once a Product exists.
"""

from .analysis import AnalysisSummary, CalculatedMargin, MarginAnalysis, MarginHealth
from .config_models import AnalyzerSettings
from .product import Product, ProductType, ProductVariants, ProductVisibility

__all__ = [
    # Configuration models
    "AnalyzerSettings",
    # Product models
    "Product",
    "ProductType",
    "ProductVariants",
    "ProductVisibility",
    # Analysis models
    "AnalysisSummary",
    "CalculatedMargin",
    "MarginAnalysis",
    "MarginHealth",
]
