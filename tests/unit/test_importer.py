from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from margin_analyzer.excel.columns import normalize_rows
from margin_analyzer.excel.reader import DecodeError, UnsupportedFormatError
from margin_analyzer.logging.error_log import ErrorLogBuffer
from margin_analyzer.models.config_models import AnalyzerSettings
from margin_analyzer.models.product import ProductType
from margin_analyzer.services.importer import (
    EmptyImportError,
    ImportLimitError,
    analysis_name_from_file,
    build_analysis,
    import_file,
    import_files,
    load_products,
)


@pytest.mark.parametrize(
    "file_name,expected",
    [
        ("products.xlsx", "products"),
        ("Q1 prices.CSV", "Q1 prices"),
        ("archive.xlsx.csv", "archive.xlsx"),
        ("notes.txt", "notes.txt"),
    ],
)
def test_analysis_name_from_file(file_name, expected):
    assert analysis_name_from_file(file_name) == expected


def test_build_analysis_summarizes_full_product_set(product_rows):
    analysis = build_analysis(normalize_rows(product_rows), "shop.xlsx")
    assert analysis.name == "shop"
    assert analysis.file_name == "shop.xlsx"
    assert analysis.summary.total_products == 3
    assert (analysis.summary.low_margin_count, analysis.summary.medium_margin_count,
            analysis.summary.high_margin_count) == (1, 1, 1)
    assert analysis.created_at.endswith("Z")


def test_build_analysis_explicit_name():
    assert build_analysis([], "shop.csv", name="March").name == "March"


def test_load_products_from_xlsx(tmp_path: Path, make_excel, product_rows, settings):
    path = make_excel(tmp_path / "shop.xlsx", product_rows)
    products = load_products(path, settings)
    assert [p.product_type for p in products] == [ProductType.PRINT, ProductType.PDF, ProductType.UNKNOWN]
    assert products[0].variants.color == "red"


def test_load_products_rejects_unsupported(tmp_path: Path, settings):
    path = tmp_path / "shop.xls"
    path.write_bytes(b"x")
    with pytest.raises(UnsupportedFormatError):
        load_products(path, settings)


def test_load_products_missing_file(tmp_path: Path, settings):
    with pytest.raises(DecodeError):
        load_products(tmp_path / "missing.csv", settings)


def test_load_products_file_size_guard(tmp_path: Path, make_csv, product_rows):
    path = make_csv(tmp_path / "shop.csv", product_rows)
    tiny = AnalyzerSettings(max_file_size_mb=0.00001)
    with pytest.raises(ImportLimitError, match="too large"):
        load_products(path, tiny)


def test_load_products_product_count_guard(tmp_path: Path, make_csv, product_rows):
    path = make_csv(tmp_path / "shop.csv", product_rows)
    with pytest.raises(ImportLimitError, match="too many products"):
        load_products(path, AnalyzerSettings(max_products=2))
    assert len(load_products(path, AnalyzerSettings(max_products=3))) == 3


def test_load_products_rejects_header_only_file(tmp_path: Path, settings):
    path = tmp_path / "empty.csv"
    path.write_text("code,name,price,purchasePrice\n", encoding="utf-8")
    with pytest.raises(EmptyImportError, match="no products"):
        load_products(path, settings)


def test_import_file_with_no_products_stores_nothing(tmp_path: Path, settings, memory_store):
    path = tmp_path / "blank.csv"
    path.write_bytes(b"")
    with pytest.raises(EmptyImportError):
        import_file(path, memory_store, settings)
    assert asyncio.run(memory_store.list_analyses()) == []


def test_import_file_saves_to_store(tmp_path: Path, make_csv, product_rows, settings, memory_store):
    path = make_csv(tmp_path / "shop.csv", product_rows)
    analysis = import_file(path, memory_store, settings)
    stored = asyncio.run(memory_store.get_analysis(analysis.id))
    assert stored == analysis
    assert stored.name == "shop"


def test_import_file_stored_analyses_guard(tmp_path: Path, make_csv, product_rows, memory_store):
    path = make_csv(tmp_path / "shop.csv", product_rows)
    limited = AnalyzerSettings(max_analyses=1)
    import_file(path, memory_store, limited)
    with pytest.raises(ImportLimitError, match="too many stored analyses"):
        import_file(path, memory_store, limited)
    assert len(asyncio.run(memory_store.list_analyses())) == 1


def test_import_file_logs_summary(tmp_path: Path, make_csv, product_rows, settings, memory_store, capsys):
    path = make_csv(tmp_path / "shop.csv", product_rows)
    import_file(path, memory_store, settings)
    out = capsys.readouterr().out
    assert "SUMMARY products=3 avg_margin=55 low=1 medium=1 high=1" in out


def test_import_files_partial_failure(tmp_path: Path, make_csv, product_rows, settings, memory_store):
    good = make_csv(tmp_path / "good.csv", product_rows)
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"not an xlsx")
    error_log = ErrorLogBuffer(logs_dir=tmp_path / "logs")

    with patch("margin_analyzer.services.progress.is_tty_enabled", return_value=False):
        result = import_files([good, bad], memory_store, settings, error_log=error_log)

    assert result.success_files == 1
    assert result.failed_files == 1
    assert result.total_files == 2
    assert result.total_products == 3
    assert [s.status for s in result.file_stats] == ["success", "failed"]
    assert result.file_stats[0].analysis_id is not None
    assert result.file_stats[1].error

    lines = error_log.file_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["file"] == "bad.xlsx"
    assert record["row"] == -1
    assert record["error_type"] == "DECODE_ERROR"


def test_import_files_name_only_for_single_file(tmp_path: Path, make_csv, product_rows, settings, memory_store):
    a = make_csv(tmp_path / "a.csv", product_rows)
    b = make_csv(tmp_path / "b.csv", product_rows)

    import_files([a], memory_store, settings, name="Custom", error_log=ErrorLogBuffer(tmp_path / "logs"))
    import_files([a, b], memory_store, settings, name="Ignored", error_log=ErrorLogBuffer(tmp_path / "logs"))

    names = sorted(x.name for x in asyncio.run(memory_store.list_analyses()))
    assert names == ["Custom", "a", "b"]


def test_import_files_all_success_writes_no_error_log(tmp_path: Path, make_csv, product_rows, settings, memory_store):
    path = make_csv(tmp_path / "ok.csv", product_rows)
    logs_dir = tmp_path / "logs"
    result = import_files([path], memory_store, settings, error_log=ErrorLogBuffer(logs_dir))
    assert result.failed_files == 0
    assert not logs_dir.exists()


def test_import_files_limit_error_type(tmp_path: Path, make_csv, product_rows, memory_store):
    path = make_csv(tmp_path / "big.csv", product_rows)
    error_log = ErrorLogBuffer(tmp_path / "logs")
    import_files([path], memory_store, AnalyzerSettings(max_products=1), error_log=error_log)
    record = json.loads(error_log.file_path.read_text(encoding="utf-8"))
    assert record["error_type"] == "IMPORT_LIMIT"


def test_import_files_no_products_error_type(tmp_path: Path, memory_store, settings):
    path = tmp_path / "header.csv"
    path.write_text("code,name,price,purchasePrice\n", encoding="utf-8")
    error_log = ErrorLogBuffer(tmp_path / "logs")
    result = import_files([path], memory_store, settings, error_log=error_log)
    assert result.failed_files == 1
    record = json.loads(error_log.file_path.read_text(encoding="utf-8"))
    assert (record["row"], record["error_type"]) == (-1, "NO_PRODUCTS")


def test_import_file_decodes_off_the_event_loop(tmp_path: Path, make_csv, product_rows, settings, memory_store):
    path = make_csv(tmp_path / "shop.csv", product_rows)
    with patch("margin_analyzer.services.importer.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        import_file(path, memory_store, settings)
    assert any(c.args[0] is load_products for c in to_thread.call_args_list)
