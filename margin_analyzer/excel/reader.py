from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet reader: file bytes -> ordered raw rows.

- .xlsx: first sheet only, read through pandas (openpyxl engine)
- .csv: delimiter sniffed from a sample (comma, semicolon or tab; comma when
  nothing is detected, e.g. a single-column file)
- 1行目をヘッダ行、2行目以降をデータ行として扱う
- only truly empty cells become ""; text such as "NA" or "None" stays literal
  unless keep_na_strings opts into pandas' NA strings
- fully empty rows are skipped
- an empty file (or a header-only sheet) yields no rows, not an error
"""

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "ReaderError",
    "DecodeError",
    "UnsupportedFormatError",
    "SheetData",
    "file_extension",
    "read_sheet",
    "read_rows",
]

SUPPORTED_EXTENSIONS = (".xlsx", ".csv")
CSV_DELIMITERS = ",;\t"
_SNIFF_BYTES = 64 * 1024


class ReaderError(Exception):
    """Base class for spreadsheet reading failures."""


class DecodeError(ReaderError):
    """Raised when file content cannot be decoded as a spreadsheet."""


class UnsupportedFormatError(ReaderError):
    """Raised when the file extension is neither .xlsx nor .csv."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, Any]]  # 列名→セル値 (空セルは "")


def file_extension(file_name: str) -> str:
    """Lower-cased extension of ``file_name``; raises if unsupported."""
    suffix = Path(file_name).suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"unsupported file type '{suffix or file_name}' (expected .xlsx or .csv)"
        )
    return suffix


def _na_options(keep_na_strings: list[str] | None) -> dict[str, Any]:
    """pandas NA options.

    None: only empty cells are missing, all other text is kept literally.
    A list: pandas' default NA strings apply, minus the listed ones.
    """
    if keep_na_strings is None:
        return {"keep_default_na": False, "na_values": [""]}
    import pandas._libs.parsers as parsers

    # pandas の既定 NA 文字列集合から keep_na_strings を除外する
    custom_na = (parsers.STR_NA_VALUES - set(keep_na_strings)) | {""}
    return {"keep_default_na": False, "na_values": list(custom_na)}


def _sniff_delimiter(data: bytes) -> str:
    """Detect the CSV delimiter from a sample; comma when nothing is detected."""
    sample = data[:_SNIFF_BYTES].decode("utf-8-sig", errors="replace")
    try:
        return csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _plain(value: Any) -> Any:
    """Convert numpy scalars to plain Python values."""
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (TypeError, ValueError):
            return value
    return value


def _frame_to_sheet(df: pd.DataFrame, sheet_name: str) -> SheetData:
    columns = [str(c).strip() for c in df.columns]
    rows: list[dict[str, Any]] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        row: dict[str, Any] = {}
        for col, val in zip(columns, raw.tolist(), strict=False):
            row[col] = "" if pd.isna(val) else _plain(val)
        rows.append(row)
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)


def read_sheet(
    source: Path | str | bytes,
    file_name: str | None = None,
    keep_na_strings: list[str] | None = None,
) -> SheetData:
    """Decode a spreadsheet into header columns and raw rows.

    Parameters
    ----------
    source: path to the file, or its raw bytes
    file_name: name used to pick the format; required when ``source`` is bytes
    keep_na_strings: opt into pandas NA strings, except the listed ones

    Raises
    ------
    UnsupportedFormatError: extension is not .xlsx/.csv
    DecodeError: content is corrupt or unreadable
    """
    if isinstance(source, bytes):
        if file_name is None:
            raise ValueError("file_name is required when reading from bytes")
        data = source
    else:
        path = Path(source)
        file_name = file_name or path.name
        file_extension(file_name)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DecodeError(f"failed to read file '{path}': {e}") from e

    suffix = file_extension(file_name)
    if not data:
        return SheetData(sheet_name=file_name, columns=[], rows=[])

    na_opts = _na_options(keep_na_strings)
    try:
        if suffix == ".xlsx":
            xls = pd.ExcelFile(io.BytesIO(data), engine="openpyxl")
            if not xls.sheet_names:
                return SheetData(sheet_name=file_name, columns=[], rows=[])
            sheet_name = str(xls.sheet_names[0])
            df = xls.parse(sheet_name, header=0, dtype=object, **na_opts)
        else:
            sheet_name = Path(file_name).stem
            df = pd.read_csv(
                io.BytesIO(data),
                sep=_sniff_delimiter(data),
                dtype=str,
                encoding="utf-8-sig",
                **na_opts,
            )
    except pd.errors.EmptyDataError:
        return SheetData(sheet_name=file_name, columns=[], rows=[])
    except Exception as e:
        raise DecodeError(f"failed to parse file '{file_name}': {e}") from e

    return _frame_to_sheet(df, sheet_name)


def read_rows(
    source: Path | str | bytes,
    file_name: str | None = None,
    keep_na_strings: list[str] | None = None,
) -> list[dict[str, Any]]:
    """Decode a spreadsheet into an ordered list of raw rows."""
    return read_sheet(source, file_name=file_name, keep_na_strings=keep_na_strings).rows
