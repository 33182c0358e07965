from __future__ import annotations

from pathlib import Path

import pytest

from margin_analyzer.excel.reader import (
    DecodeError,
    ReaderError,
    UnsupportedFormatError,
    file_extension,
    read_rows,
    read_sheet,
)


def test_file_extension_is_case_insensitive():
    assert file_extension("Products.XLSX") == ".xlsx"
    assert file_extension("export.csv") == ".csv"


@pytest.mark.parametrize("name", ["products.xls", "products.txt", "products"])
def test_file_extension_rejects_other_formats(name):
    with pytest.raises(UnsupportedFormatError):
        file_extension(name)


def test_unsupported_format_is_reader_error(tmp_path: Path):
    p = tmp_path / "products.json"
    p.write_text("[]", encoding="utf-8")
    with pytest.raises(ReaderError):
        read_rows(p)


def test_read_xlsx_first_sheet(tmp_path: Path, make_excel, product_rows):
    path = make_excel(tmp_path / "products.xlsx", product_rows)
    sheet = read_sheet(path)
    assert sheet.columns == ["code", "name", "price", "purchasePrice", "variant:Barva"]
    assert len(sheet.rows) == 3
    first = sheet.rows[0]
    assert first["code"] == "X1/TISK"
    assert first["price"] == 100
    assert sheet.rows[1]["variant:Barva"] == ""


def test_read_csv_comma(tmp_path: Path, make_csv, product_rows):
    path = make_csv(tmp_path / "products.csv", product_rows)
    rows = read_rows(path)
    assert [r["code"] for r in rows] == ["X1/TISK", "X2/PDF", "X3"]
    # csv cells stay text
    assert rows[0]["price"] == "100"
    assert rows[2]["price"] == "10,00"
    assert rows[1]["variant:Barva"] == ""


def test_read_csv_semicolon(tmp_path: Path):
    path = tmp_path / "products.csv"
    path.write_text("code;name;price;purchasePrice\nA1;Item;100;40\nA2;Other;50;10\n", encoding="utf-8")
    rows = read_rows(path)
    assert rows == [
        {"code": "A1", "name": "Item", "price": "100", "purchasePrice": "40"},
        {"code": "A2", "name": "Other", "price": "50", "purchasePrice": "10"},
    ]


def test_read_csv_with_bom(tmp_path: Path):
    path = tmp_path / "bom.csv"
    path.write_bytes(b"\xef\xbb\xbfcode,price\nA,1\n")
    assert read_rows(path) == [{"code": "A", "price": "1"}]


def test_read_from_bytes_requires_file_name():
    with pytest.raises(ValueError):
        read_rows(b"code,price\nA,1\n")
    assert read_rows(b"code,price\nA,1\n", file_name="x.csv") == [{"code": "A", "price": "1"}]


def test_empty_file_yields_no_rows(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_bytes(b"")
    assert read_rows(path) == []


def test_header_only_yields_no_rows(tmp_path: Path, make_excel):
    path = make_excel(tmp_path / "header.xlsx", [], columns=["code", "price"])
    sheet = read_sheet(path)
    assert sheet.rows == []
    assert sheet.columns == ["code", "price"]


def test_blank_rows_are_skipped(tmp_path: Path):
    path = tmp_path / "gaps.csv"
    path.write_text("code,price\nA,1\n,\nB,2\n", encoding="utf-8")
    assert [r["code"] for r in read_rows(path)] == ["A", "B"]


def test_corrupt_xlsx_raises_decode_error(tmp_path: Path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"this is not a zip archive")
    with pytest.raises(DecodeError):
        read_rows(path)


def test_single_column_csv_keeps_whole_values(tmp_path: Path):
    path = tmp_path / "codes.csv"
    path.write_text("code\nA1/TISK\nB2\n", encoding="utf-8")
    assert read_rows(path) == [{"code": "A1/TISK"}, {"code": "B2"}]


def test_read_csv_tab(tmp_path: Path):
    path = tmp_path / "products.csv"
    path.write_text("code\tname\tprice\nA1\tItem\t100\nA2\tOther\t50\n", encoding="utf-8")
    assert read_rows(path) == [
        {"code": "A1", "name": "Item", "price": "100"},
        {"code": "A2", "name": "Other", "price": "50"},
    ]


def test_na_text_is_kept_literally_by_default(tmp_path: Path):
    path = tmp_path / "na.csv"
    path.write_text("code,name\nNA,None\n", encoding="utf-8")
    assert read_rows(path) == [{"code": "NA", "name": "None"}]


def test_keep_na_strings_opts_into_pandas_na(tmp_path: Path):
    path = tmp_path / "na.csv"
    path.write_text("code,name\nNA,N/A\n", encoding="utf-8")
    # 空リストは pandas 既定の NA 文字列をすべて空セル扱いにする
    assert read_rows(path, keep_na_strings=[]) == []
    assert read_rows(path, keep_na_strings=["NA"]) == [{"code": "NA", "name": ""}]
