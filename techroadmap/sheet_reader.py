from __future__ import annotations

"""
Tabular reader for roadmap spreadsheets.

Workbooks are read sheet by sheet and CSV files as a single sheet named
after the file.  Every sheet comes back as an ordered list of rows, each
row an ordered list of raw cell values.  No header is inferred at this
stage and cell text is left untouched, so line breaks inside a cell
survive until the aggregator splits them.
"""

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pandas as pd
from loguru import logger

from .config import SKIPPED_SHEET_NAMES
from .errors import SheetSkipped, SourceNotFound, UnreadableSource

CSV_SUFFIXES = {".csv"}


@dataclass
class Sheet:
    name: str
    rows: List[List[object]] = field(default_factory=list)

    @property
    def header(self) -> List[object]:
        return self.rows[0] if self.rows else []

    @property
    def data_rows(self) -> List[List[object]]:
        return self.rows[1:]


def _is_missing(value: object) -> bool:
    if isinstance(value, str):
        return value == ""
    return value is None or pd.isna(value)


def _frame_to_rows(df: pd.DataFrame) -> List[List[object]]:
    """
    Turn a header-less frame into lists of cells with blanks as ``None``.

    Only empty cells are blanks.  Text such as "NaN", "null" or "N/A" is
    read with pandas' NA parsing off and comes through unchanged.
    """
    rows: List[List[object]] = []
    for values in df.itertuples(index=False, name=None):
        rows.append([None if _is_missing(v) else v for v in values])
    return rows


def _ensure_exists(path: Path) -> Path:
    path = Path(path)
    if not path.is_file():
        raise SourceNotFound(path)
    return path


def read_workbook(path: Path) -> List[Sheet]:
    """
    Read every sheet of a workbook, in workbook order.

    Cells are read as raw objects (no dtype coercion) so numbers stay
    numbers and multi-line strings keep their line breaks.
    """
    path = _ensure_exists(path)
    logger.info("Reading workbook {}", path)
    try:
        frames = pd.read_excel(
            path,
            sheet_name=None,
            header=None,
            dtype=object,
            keep_default_na=False,
            na_values=[],
        )
    except (ValueError, zipfile.BadZipFile) as e:
        raise UnreadableSource(path, str(e)) from e
    sheets = [Sheet(name=str(name), rows=_frame_to_rows(df)) for name, df in frames.items()]
    logger.info("Found {} sheets in workbook", len(sheets))
    return sheets


def read_csv(path: Path, name: str | None = None) -> Sheet:
    """
    Read a CSV file as one sheet.

    Quoted fields may span lines.  Rows with more fields than the header
    row (a trailing comma is enough) are cut to the header width; the
    extra fields belong to no column.  Shorter rows are padded with
    blanks.
    """
    path = _ensure_exists(path)
    sheet_name = name or path.stem
    options = dict(header=None, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    try:
        width = pd.read_csv(path, nrows=1, **options).shape[1]

        def trim(fields: List[str]) -> List[str]:
            logger.warning(
                "{}: row with {} fields cut to the {} header columns", path.name, len(fields), width
            )
            return fields[:width]

        df = pd.read_csv(
            path,
            engine="python",
            skip_blank_lines=True,
            on_bad_lines=trim,
            **options,
        )
    except pd.errors.EmptyDataError:
        logger.warning("CSV file {} is empty", path)
        return Sheet(name=sheet_name)
    rows = _frame_to_rows(df)
    logger.info("Read {} rows from {}", len(rows), path)
    return Sheet(name=sheet_name, rows=rows)


def read_tabular(path: Path) -> List[Sheet]:
    """Dispatch on suffix: CSV files give one sheet, anything else is a workbook."""
    path = Path(path)
    if path.suffix.lower() in CSV_SUFFIXES:
        return [read_csv(path)]
    return read_workbook(path)


def is_ignored_sheet(name: str) -> bool:
    return name.lower() in SKIPPED_SHEET_NAMES


def check_sheet(sheet: Sheet) -> None:
    """
    Raise :class:`SheetSkipped` for sheets that must not be ingested:
    readme/instructions sheets and sheets without any data row.
    """
    if is_ignored_sheet(sheet.name):
        raise SheetSkipped(sheet.name, SheetSkipped.IGNORED_NAME)
    if len(sheet.rows) < 2:
        raise SheetSkipped(sheet.name, SheetSkipped.NO_DATA, "no rows beyond the header")
