from __future__ import annotations

import math
from collections.abc import Iterable

from ..models.analysis import AnalysisSummary, MarginHealth
from ..models.import_result import ImportResult
from ..models.product import Product
from .calculations import effective_margin, margin_health

"""Summary aggregation and SUMMARY line rendering.

summarize() reduces any product collection (the full import or a filtered
subset) to bucketed margin statistics. The render_* helpers produce the
single-line SUMMARY output used by the CLI and the import log.
"""

__all__ = [
    "summarize",
    "render_summary_line",
    "render_import_summary_line",
]


def summarize(products: Iterable[Product]) -> AnalysisSummary:
    """Aggregate effective margins into an AnalysisSummary.

    Non-finite margins are left out of the average but still counted in a
    bucket, so the three counts always add up to total_products.

    >>> summarize([])
    AnalysisSummary(total_products=0, avg_margin=0.0, low_margin_count=0, medium_margin_count=0, high_margin_count=0)
    """
    margins = [effective_margin(p) for p in products]
    if not margins:
        return AnalysisSummary()

    valid = [m for m in margins if math.isfinite(m)]
    avg_margin = sum(valid) / len(valid) if valid else 0.0

    health = [margin_health(m) for m in margins]
    return AnalysisSummary(
        total_products=len(margins),
        avg_margin=avg_margin,
        low_margin_count=health.count(MarginHealth.LOW),
        medium_margin_count=health.count(MarginHealth.MEDIUM),
        high_margin_count=health.count(MarginHealth.GOOD),
    )


def _format_number(value: float) -> str:
    # 整数値は小数点なし、極小値は指数表記を避ける
    if value == 0:
        return "0"
    if not math.isfinite(value):
        return str(value)
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(summary: AnalysisSummary) -> str:
    """Render a SUMMARY line for one analysis.

    >>> render_summary_line(AnalysisSummary(3, 55.5, 1, 1, 1))
    'SUMMARY products=3 avg_margin=55.5 low=1 medium=1 high=1'
    """
    return (
        f"SUMMARY products={summary.total_products} "
        f"avg_margin={_format_number(summary.avg_margin)} "
        f"low={summary.low_margin_count} "
        f"medium={summary.medium_margin_count} "
        f"high={summary.high_margin_count}"
    )


def render_import_summary_line(result: ImportResult) -> str:
    """Render a SUMMARY line for a multi-file import run.

    Format:
    SUMMARY files={total}/{total} success={success} failed={failed}
    products={products} elapsed_sec={elapsed}
    """
    total = result.total_files
    return (
        f"SUMMARY files={total}/{total} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"products={result.total_products} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)}"
    )
