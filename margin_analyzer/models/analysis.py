from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .product import Product

"""Analysis-level domain models.

- AnalysisSummary: bucketed margin statistics over a product collection
- MarginAnalysis: immutable snapshot of one imported spreadsheet
- CalculatedMargin: target-price projection for one product (never persisted)
- MarginHealth: low / medium / good classification shared with the aggregator
"""

__all__ = [
    "LOW_MARGIN_THRESHOLD",
    "HIGH_MARGIN_THRESHOLD",
    "MarginHealth",
    "AnalysisSummary",
    "CalculatedMargin",
    "MarginAnalysis",
]

# margin < 50 -> low, 50 <= margin < 70 -> medium, margin >= 70 -> good
LOW_MARGIN_THRESHOLD = 50.0
HIGH_MARGIN_THRESHOLD = 70.0


class MarginHealth(Enum):
    LOW = "low"
    MEDIUM = "medium"
    GOOD = "good"


@dataclass(frozen=True)
class AnalysisSummary:
    """Aggregate statistics of an analysis.

    The three counts are mutually exclusive and always sum to total_products.
    """
    total_products: int = 0
    avg_margin: float = 0.0
    low_margin_count: int = 0
    medium_margin_count: int = 0
    high_margin_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalProducts": self.total_products,
            "avgMargin": self.avg_margin,
            "lowMarginCount": self.low_margin_count,
            "mediumMarginCount": self.medium_margin_count,
            "highMarginCount": self.high_margin_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AnalysisSummary:
        data = data or {}
        return cls(
            total_products=int(data.get("totalProducts", 0)),
            avg_margin=float(data.get("avgMargin", 0.0)),
            low_margin_count=int(data.get("lowMarginCount", 0)),
            medium_margin_count=int(data.get("mediumMarginCount", 0)),
            high_margin_count=int(data.get("highMarginCount", 0)),
        )


@dataclass(frozen=True)
class CalculatedMargin:
    """Price projection for reaching a target margin.

    new_price is math.inf when the target is 100% or more (unattainable).
    """
    target_percentage: float
    new_price: float
    price_change: float
    price_change_percent: float


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class MarginAnalysis:
    """Snapshot of one imported spreadsheet.

    Created once at import time; the summary is computed from the full,
    unfiltered product set.
    """
    name: str
    file_name: str
    products: tuple[Product, ...]
    summary: AnalysisSummary
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=_utc_now_iso)  # ISO8601 UTC, 'Z' suffix

    @property
    def created_at_dt(self) -> datetime:
        """created_at parsed as an aware datetime (used for ordering)."""
        return datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "fileName": self.file_name,
            "createdAt": self.created_at,
            "products": [p.to_dict() for p in self.products],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MarginAnalysis:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            file_name=str(data.get("fileName", "")),
            created_at=str(data.get("createdAt") or _utc_now_iso()),
            products=tuple(Product.from_dict(p) for p in data.get("products", [])),
            summary=AnalysisSummary.from_dict(data.get("summary")),
        )
