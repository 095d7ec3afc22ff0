from __future__ import annotations

"""
Ingestion runs: workbook import, workbook-to-CSV conversion and CSV upload.

Every run walks its units (sheets or CSV files) one at a time.  A unit
is read, its headers resolved, its rows aggregated and the result
persisted (or written to CSV) before the next unit starts.  Skipped
units and per-unit failures are logged and counted; only a missing
source or an unreachable store aborts the run.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pandas as pd
from loguru import logger

from .aggregate import TopicRecord, aggregate_rows
from .config import (
    CSV_PROFILE,
    UNSAFE_FILENAME_CHARS,
    WORKBOOK_PROFILE,
    IngestProfile,
    TechStackHeaders,
)
from .errors import PersistenceError, SheetSkipped, SourceNotFound
from .headers import resolve_headers
from .sheet_reader import Sheet, check_sheet, read_csv, read_workbook
from .sink import upsert_tech_stack
from .store import DocumentStore

Progress = Callable[[int, int, str], None]


@dataclass
class ParsedSheet:
    name: str
    headers: TechStackHeaders
    records: List[TopicRecord]


@dataclass
class RunSummary:
    total: int = 0
    processed: List[str] = field(default_factory=list)
    skipped: List[SheetSkipped] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    outputs: List[Path] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.processed)


def parse_sheet(sheet: Sheet, profile: IngestProfile) -> ParsedSheet:
    """
    Resolve headers and aggregate the rows of one sheet.

    Raises :class:`SheetSkipped` for ignored or empty sheets, sheets
    without a topic column, and sheets where no topic is ever set.
    """
    check_sheet(sheet)
    logger.info("Processing sheet: {}", sheet.name)

    resolved = resolve_headers(sheet.header, profile)
    if not resolved.has_topic:
        raise SheetSkipped(sheet.name, SheetSkipped.MISSING_TOPIC_COLUMN)

    records = aggregate_rows(sheet.data_rows, resolved, profile.carry_forward_topic)
    if not records:
        raise SheetSkipped(sheet.name, SheetSkipped.NO_TOPICS, "no row carries a topic")

    logger.info("Processed {} unique topics from {}", len(records), sheet.name)
    return ParsedSheet(name=sheet.name, headers=resolved.labels, records=records)


def _run_unit(
    summary: RunSummary,
    unit: str,
    work: Callable[[], object],
    progress: Optional[Progress],
) -> None:
    try:
        work()
    except SheetSkipped as skip:
        logger.warning("{}", skip)
        summary.skipped.append(skip)
    except PersistenceError as e:
        logger.error('Error saving tech stack "{}": {}', unit, e)
        summary.failed.append((unit, str(e)))
    except (ValueError, TypeError, UnicodeDecodeError, pd.errors.ParserError) as e:
        logger.exception('Error processing "{}": {}', unit, e)
        summary.failed.append((unit, str(e)))
    else:
        summary.processed.append(unit)
        if progress is not None:
            progress(summary.processed_count, summary.total, unit)


# ---------------------------
# Workbook import
# ---------------------------

def import_workbook(
    path: Path,
    store: DocumentStore,
    profile: IngestProfile = WORKBOOK_PROFILE,
    progress: Optional[Progress] = None,
) -> RunSummary:
    """Create or replace one tech stack per valid sheet of ``path``."""
    path = Path(path)
    sheets = read_workbook(path)
    summary = RunSummary(total=len(sheets))

    for sheet in sheets:
        def work(sheet: Sheet = sheet) -> None:
            parsed = parse_sheet(sheet, profile)
            upsert_tech_stack(
                store,
                name=parsed.name,
                headers=parsed.headers,
                records=parsed.records,
                description=f"Imported from {path.name}, sheet: {parsed.name}",
            )

        _run_unit(summary, sheet.name, work, progress)

    logger.info("Excel processing complete. Processed {} tech stacks.", summary.processed_count)
    return summary


# ---------------------------
# Workbook -> CSV conversion
# ---------------------------

def csv_filename(sheet_name: str) -> str:
    return re.sub(UNSAFE_FILENAME_CHARS, "_", sheet_name) + ".csv"


def records_to_frame(headers: TechStackHeaders, records: List[TopicRecord]) -> pd.DataFrame:
    """One row per topic; sub-topics and projects are newline-joined."""
    rows = [
        (
            r.topic,
            "\n".join(r.sub_topics),
            "\n".join(r.projects),
            r.completion_status,
        )
        for r in records
    ]
    columns = [headers.topic, headers.subTopics, headers.projects, headers.status]
    return pd.DataFrame(rows, columns=columns)


def write_sheet_csv(parsed: ParsedSheet, out_dir: Path) -> Path:
    """
    Write a normalized CSV for one sheet.

    Quoting is minimal: only fields containing a comma, a double quote
    or a line break are quoted, with inner quotes doubled.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / csv_filename(parsed.name)
    df = records_to_frame(parsed.headers, parsed.records)
    df.to_csv(out_path, index=False, lineterminator="\n", encoding="utf-8")
    logger.info("Created CSV file: {} ({} data rows)", out_path, len(df))
    return out_path


def convert_workbook(
    path: Path,
    out_dir: Path,
    profile: IngestProfile = WORKBOOK_PROFILE,
    progress: Optional[Progress] = None,
) -> RunSummary:
    """Write one normalized CSV per valid sheet; the store is not touched."""
    path, out_dir = Path(path), Path(out_dir)
    sheets = read_workbook(path)
    summary = RunSummary(total=len(sheets))

    for sheet in sheets:
        def work(sheet: Sheet = sheet) -> None:
            summary.outputs.append(write_sheet_csv(parse_sheet(sheet, profile), out_dir))

        _run_unit(summary, sheet.name, work, progress)

    logger.info(
        "Conversion complete. Generated {} CSV files in {}.", summary.processed_count, out_dir
    )
    return summary


# ---------------------------
# CSV upload
# ---------------------------

def upload_csv(
    path: Path,
    name: str,
    store: DocumentStore,
    description: Optional[str] = None,
    profile: IngestProfile = CSV_PROFILE,
) -> dict:
    """
    Ingest one CSV file into the tech stack called ``name``.

    The readme/instructions rule applies to the file name, not to
    ``name``.
    """
    path = Path(path)
    sheet = read_csv(path)
    parsed = parse_sheet(sheet, profile)
    return upsert_tech_stack(
        store,
        name=name,
        headers=parsed.headers,
        records=parsed.records,
        description=description,
    )


def upload_csv_file(
    path: Path,
    name: str,
    store: DocumentStore,
    description: Optional[str] = None,
    profile: IngestProfile = CSV_PROFILE,
    progress: Optional[Progress] = None,
) -> RunSummary:
    """Single-file upload wrapped in the same bookkeeping as batch runs."""
    path = Path(path)
    if not path.is_file():
        raise SourceNotFound(path)
    summary = RunSummary(total=1)
    _run_unit(
        summary,
        name,
        lambda: upload_csv(path, name, store, description=description, profile=profile),
        progress,
    )
    return summary


def upload_directory(
    directory: Path,
    store: DocumentStore,
    profile: IngestProfile = CSV_PROFILE,
    progress: Optional[Progress] = None,
) -> RunSummary:
    """Upload every ``.csv`` file in ``directory``; file stems become names."""
    directory = Path(directory)
    if not directory.is_dir():
        raise SourceNotFound(directory)

    csv_files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".csv")
    logger.info("Found {} CSV files in {}", len(csv_files), directory)
    summary = RunSummary(total=len(csv_files))

    for csv_path in csv_files:
        name = csv_path.stem
        logger.info('Processing "{}" from {}...', name, csv_path.name)
        _run_unit(
            summary,
            name,
            lambda csv_path=csv_path, name=name: upload_csv(csv_path, name, store, profile=profile),
            progress,
        )

    logger.info("All CSV files processed. Uploaded {} tech stacks.", summary.processed_count)
    return summary
