from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

"""Product domain model for the margin analyzer.

A Product is one normalized spreadsheet row. Numeric fields are always finite
floats (missing or unparsable input becomes 0.0); the optional variant and
visibility attributes use None for "not applicable".

Serialization keeps the camelCase keys of the spreadsheet columns so stored
analyses stay readable next to the source files.
"""

__all__ = [
    "ProductType",
    "ProductVariants",
    "ProductVisibility",
    "Product",
]


class ProductType(Enum):
    """Product format derived from code/name markers.

    Exactly one value per product; there is no combined print+pdf type.
    """
    PRINT = "print"
    PDF = "pdf"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProductVariants:
    """Optional variant attributes. None = column absent or empty."""
    color: str | None = None
    part: str | None = None
    pdf: str | None = None
    print: str | None = None
    size: str | None = None
    colored: str | None = None
    monochrome: str | None = None

    def items(self) -> list[tuple[str, str]]:
        """Present (non-None) attributes as (key, value) pairs in field order."""
        return [
            (f.name, getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not None
        ]

    def to_dict(self) -> dict[str, str]:
        # absent keys are omitted, not serialized as null
        return dict(self.items())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ProductVariants:
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: str(v) for k, v in data.items() if k in known and v is not None})


@dataclass(frozen=True)
class ProductVisibility:
    """Display visibility category of the variant and of the parent product.

    None = the column was not present in the source sheet.
    """
    variant: str | None = None
    product: str | None = None

    def to_dict(self) -> dict[str, str]:
        pairs = (("variant", self.variant), ("product", self.product))
        return {k: v for k, v in pairs if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ProductVisibility:
        data = data or {}
        variant = data.get("variant")
        product = data.get("product")
        return cls(
            variant=None if variant is None else str(variant),
            product=None if product is None else str(product),
        )


# Python attribute -> serialized (spreadsheet) key
_SERIALIZED_KEYS: dict[str, str] = {
    "code": "code",
    "pair_code": "pairCode",
    "name": "name",
    "price": "price",
    "price_ratio": "priceRatio",
    "standard_price": "standardPrice",
    "purchase_price": "purchasePrice",
    "including_vat": "includingVat",
    "percent_vat": "percentVat",
    "relative_margin": "relativeMargin",
    "absolute_margin": "absoluteMargin",
}

_NUMERIC_ATTRS = (
    "price",
    "price_ratio",
    "standard_price",
    "purchase_price",
    "percent_vat",
    "relative_margin",
    "absolute_margin",
)


@dataclass(frozen=True)
class Product:
    """Normalized product record.

    ``code`` is expected to be unique within an analysis but this is not
    enforced. ``product_type`` is always computed from code/name at parse time.
    ``relative_margin`` reads 0.0 when the source had no value; ``margin_supplied``
    tells the two cases apart.
    """
    code: str = ""
    pair_code: str = ""
    name: str = ""
    price: float = 0.0
    price_ratio: float = 0.0
    standard_price: float = 0.0
    purchase_price: float = 0.0
    including_vat: bool = False
    percent_vat: float = 0.0
    relative_margin: float = 0.0
    absolute_margin: float = 0.0
    margin_supplied: bool = False  # relativeMargin came from a non-empty source cell
    variants: ProductVariants = field(default_factory=ProductVariants)
    visibility: ProductVisibility = field(default_factory=ProductVisibility)
    product_type: ProductType = ProductType.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {key: getattr(self, attr) for attr, key in _SERIALIZED_KEYS.items()}
        data["marginSupplied"] = self.margin_supplied
        data["variants"] = self.variants.to_dict()
        data["visibility"] = self.visibility.to_dict()
        data["productType"] = self.product_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Product:
        """Rebuild a Product from its serialized form.

        Missing keys fall back to the field defaults; an unrecognized
        productType is read as UNKNOWN.
        """
        kwargs: dict[str, Any] = {}
        for attr, key in _SERIALIZED_KEYS.items():
            if key not in data:
                continue
            value = data[key]
            if attr in _NUMERIC_ATTRS:
                kwargs[attr] = float(value or 0)
            elif attr == "including_vat":
                kwargs[attr] = bool(value)
            else:
                kwargs[attr] = "" if value is None else str(value)
        if "marginSupplied" in data:
            kwargs["margin_supplied"] = bool(data["marginSupplied"])
        else:
            kwargs["margin_supplied"] = data.get("relativeMargin") not in (None, "")
        try:
            product_type = ProductType(data.get("productType", "unknown"))
        except ValueError:
            product_type = ProductType.UNKNOWN
        return cls(
            **kwargs,
            variants=ProductVariants.from_dict(data.get("variants")),
            visibility=ProductVisibility.from_dict(data.get("visibility")),
            product_type=product_type,
        )
