from __future__ import annotations

from ..models.product import ProductType

"""Product type classifier.

The product code is the source of truth; the name is only consulted when the
code carries no marker at all. Print markers are checked before pdf markers,
so the result is always exactly one type.
"""

__all__ = [
    "classify",
]

_PRINT_MARKER = "TISK"
_PDF_MARKER = "PDF"


def _code_has(code: str, marker: str) -> bool:
    return f"/{marker}" in code or f"-{marker}" in code or code.endswith(marker)


def classify(code: str | None, name: str | None) -> ProductType:
    """Classify a product as print, pdf or unknown (case-insensitive)."""
    code_u = (code or "").upper()
    name_u = (name or "").upper()

    if _code_has(code_u, _PRINT_MARKER):
        return ProductType.PRINT
    if _code_has(code_u, _PDF_MARKER):
        return ProductType.PDF

    # 名前によるフォールバック
    if _PRINT_MARKER in name_u or "PRINT" in name_u:
        return ProductType.PRINT
    if _PDF_MARKER in name_u:
        return ProductType.PDF
    return ProductType.UNKNOWN
