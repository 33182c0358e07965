from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from ..excel.columns import normalize_rows
from ..excel.reader import DecodeError, ReaderError, UnsupportedFormatError, file_extension, read_sheet
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..logging.init import log_summary
from ..models.analysis import MarginAnalysis
from ..models.config_models import AnalyzerSettings
from ..models.import_result import FileStat, ImportResult
from ..models.product import Product
from ..storage import AnalysisStore, StorageError
from .progress import ProgressTracker
from .summary import render_summary_line, summarize

"""Import service: spreadsheet file -> stored MarginAnalysis.

Pipeline per file:
1. extension check (.xlsx / .csv)
2. file size guard
3. decode rows, normalize + classify every row
4. product count guard (at least one, at most max_products)
5. stored analyses guard
6. summary over the full product set, snapshot saved to the store

import_files() runs the pipeline over several files; a failing file is
recorded in the error log and the remaining files continue.
"""

__all__ = [
    "ImportFailedError",
    "ImportLimitError",
    "EmptyImportError",
    "analysis_name_from_file",
    "build_analysis",
    "load_products",
    "import_file",
    "import_file_async",
    "import_files",
]

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"\.(xlsx|csv)$", re.IGNORECASE)


class ImportFailedError(Exception):
    """Base exception for import failures."""


class ImportLimitError(ImportFailedError):
    """Raised when a file exceeds one of the configured import guards."""


class EmptyImportError(ImportFailedError):
    """Raised when a file decodes to zero products."""


def analysis_name_from_file(file_name: str) -> str:
    """Default analysis name: file name without its .xlsx/.csv extension."""
    return _EXTENSION_RE.sub("", file_name)


def build_analysis(products: Sequence[Product], file_name: str, name: str | None = None) -> MarginAnalysis:
    """Create the immutable snapshot for a freshly imported product set."""
    return MarginAnalysis(
        name=name or analysis_name_from_file(file_name) or file_name,
        file_name=file_name,
        products=tuple(products),
        summary=summarize(products),
    )


def load_products(path: Path, settings: AnalyzerSettings) -> list[Product]:
    """Decode and normalize ``path`` applying the file size and product guards.

    Raises:
        UnsupportedFormatError: not an .xlsx/.csv file
        ImportLimitError: file too large or too many products
        EmptyImportError: no product rows
        DecodeError: unreadable spreadsheet
    """
    file_extension(path.name)
    try:
        size = path.stat().st_size
    except OSError as e:
        raise DecodeError(f"failed to read file '{path}': {e}") from e
    if size > settings.max_file_size_bytes:
        raise ImportLimitError(
            f"file '{path.name}' is too large ({size} bytes, max {settings.max_file_size_mb} MB)"
        )

    sheet = read_sheet(path, keep_na_strings=settings.keep_na_strings)
    logger.debug(f"{path.name}: sheet={sheet.sheet_name} columns={sheet.columns} rows={len(sheet.rows)}")
    products = normalize_rows(sheet.rows, sheet.columns)

    if not products:
        raise EmptyImportError(f"file '{path.name}' contains no products")
    if len(products) > settings.max_products:
        raise ImportLimitError(
            f"file '{path.name}' has too many products ({len(products)}, max {settings.max_products})"
        )
    return products


async def import_file_async(
    path: Path,
    store: AnalysisStore,
    settings: AnalyzerSettings,
    name: str | None = None,
) -> MarginAnalysis:
    """Import one file and save the resulting analysis to ``store``."""
    products = await asyncio.to_thread(load_products, path, settings)

    existing = await store.list_analyses()
    if len(existing) >= settings.max_analyses:
        raise ImportLimitError(
            f"too many stored analyses ({len(existing)}, max {settings.max_analyses}); delete some first"
        )

    analysis = build_analysis(products, path.name, name)
    await store.save_analysis(analysis)
    logger.info(f"imported {path.name} as '{analysis.name}' id={analysis.id}")
    log_summary(render_summary_line(analysis.summary)[len("SUMMARY "):])
    return analysis


def import_file(
    path: Path,
    store: AnalysisStore,
    settings: AnalyzerSettings,
    name: str | None = None,
) -> MarginAnalysis:
    """Synchronous wrapper around import_file_async (not for use inside a running loop)."""
    return asyncio.run(import_file_async(path, store, settings, name))


def _error_type(exc: Exception) -> str:
    if isinstance(exc, ImportLimitError):
        return "IMPORT_LIMIT"
    if isinstance(exc, EmptyImportError):
        return "NO_PRODUCTS"
    if isinstance(exc, UnsupportedFormatError):
        return "UNSUPPORTED_FORMAT"
    if isinstance(exc, DecodeError):
        return "DECODE_ERROR"
    if isinstance(exc, StorageError):
        return "STORAGE_ERROR"
    return "IMPORT_ERROR"


async def _import_all(
    paths: Sequence[Path],
    store: AnalysisStore,
    settings: AnalyzerSettings,
    name: str | None,
    error_log: ErrorLogBuffer,
) -> tuple[list[FileStat], int]:
    file_stats: list[FileStat] = []
    success_count = 0
    failed_count = 0
    total_products = 0

    with ProgressTracker(len(paths)) as progress:
        for path in paths:
            progress.start_file(path)
            file_start = datetime.now(UTC)
            # 名前指定は単一ファイル時のみ有効
            file_name_override = name if len(paths) == 1 else None
            try:
                analysis = await import_file_async(path, store, settings, file_name_override)
            except (ImportFailedError, ReaderError, StorageError) as e:
                failed_count += 1
                logger.error(f"{path.name}: {e}")
                error_log.append(ErrorRecord.create(file=path.name, row=-1, error_type=_error_type(e), message=str(e)))
                file_stats.append(
                    FileStat(
                        file_name=path.name,
                        status="failed",
                        products=0,
                        elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
                        error=str(e),
                    )
                )
            else:
                success_count += 1
                total_products += analysis.summary.total_products
                file_stats.append(
                    FileStat(
                        file_name=path.name,
                        status="success",
                        products=analysis.summary.total_products,
                        elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
                        analysis_id=analysis.id,
                    )
                )
            progress.set_postfix(success=success_count, failed=failed_count, products=total_products)
            progress.finish_file()

    return file_stats, total_products


def import_files(
    paths: Sequence[Path],
    store: AnalysisStore,
    settings: AnalyzerSettings,
    name: str | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Import every file in ``paths``; failures are logged, not raised.

    ``name`` applies only when a single file is imported.
    """
    start_time = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()

    file_stats, total_products = asyncio.run(_import_all(paths, store, settings, name, error_log))

    try:
        log_path = error_log.flush()
    except OSError as e:
        logger.warning(f"failed to write error log: {e}")
    else:
        if log_path is not None:
            logger.info(f"error details written to {log_path}")

    end_time = datetime.now(UTC)
    success = sum(1 for s in file_stats if s.status == "success")
    return ImportResult(
        success_files=success,
        failed_files=len(file_stats) - success,
        total_products=total_products,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_stats=file_stats,
    )
