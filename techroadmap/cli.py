# techroadmap/cli.py
"""
Command-line runner for tech-stack ingestion.

Subcommands:
- import   read every sheet of a workbook into the store
- convert  write one normalized CSV per sheet (staging for bulk upload)
- upload   ingest one CSV (--file/--name) or every CSV in a directory (--dir)
- serve    run the HTTP API

Prints a running count of processed units and a final summary; exits
non-zero only when the source is missing or unreadable, or the store is
unreachable.
"""

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from techroadmap.config import API_HOST, API_PORT, DEFAULT_CSV_OUT_DIR, LOG_DIR
from techroadmap.errors import SourceNotFound, StoreUnavailable, UnreadableSource
from techroadmap.ingest import (
    RunSummary,
    convert_workbook,
    import_workbook,
    upload_csv_file,
    upload_directory,
)
from techroadmap.store import DocumentStore, InMemoryStore, MongoStore


_file_sink: Optional[int] = None


def _configure_logging() -> None:
    global _file_sink
    if _file_sink is not None:
        return
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    _file_sink = logger.add(LOG_DIR / "ingest.log", rotation="5 MB", retention=5, level="INFO")


def _open_store(dry_run: bool) -> DocumentStore:
    if dry_run:
        logger.info("Dry run: writing to an in-memory store")
        return InMemoryStore()
    store = MongoStore.from_config()
    store.ping()
    return store


def _print_progress(done: int, total: int, unit: str) -> None:
    print(f"Processed {done}/{total}: {unit}")


def _print_summary(summary: RunSummary, noun: str) -> None:
    for skip in summary.skipped:
        print(f"[SKIP] {skip}")
    for unit, err in summary.failed:
        print(f"[FAIL] {unit}: {err}")
    print(f"Done. Processed {summary.processed_count} {noun}.")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="techroadmap")
    sub = ap.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="import every sheet of a workbook")
    p_import.add_argument("--file", required=True, type=Path, help="workbook path (.xlsx)")
    p_import.add_argument("--dry-run", action="store_true", help="parse and aggregate without MongoDB")

    p_convert = sub.add_parser("convert", help="convert a workbook into one CSV per sheet")
    p_convert.add_argument("--file", required=True, type=Path, help="workbook path (.xlsx)")
    p_convert.add_argument("--out", type=Path, default=DEFAULT_CSV_OUT_DIR, help="output directory")

    p_upload = sub.add_parser("upload", help="upload CSV files as tech stacks")
    src = p_upload.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", type=Path, help="single CSV file (requires --name)")
    src.add_argument("--dir", type=Path, help="directory of CSV files; file names become tech stack names")
    p_upload.add_argument("--name", help="tech stack name for --file")
    p_upload.add_argument("--description", default=None, help="tech stack description for --file")
    p_upload.add_argument("--dry-run", action="store_true", help="parse and aggregate without MongoDB")

    p_serve = sub.add_parser("serve", help="run the HTTP API")
    p_serve.add_argument("--host", default=API_HOST)
    p_serve.add_argument("--port", type=int, default=API_PORT)
    return ap


def _serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("techroadmap.api:app", host=host, port=port)
    return 0


def _check_source(args: argparse.Namespace) -> None:
    if args.command == "upload" and args.dir:
        if not args.dir.is_dir():
            raise SourceNotFound(args.dir)
    elif not args.file.is_file():
        raise SourceNotFound(args.file)


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.command == "upload" and args.file and not args.name:
        ap.error("upload --file requires --name")

    if args.command == "serve":
        return _serve(args.host, args.port)

    _configure_logging()
    try:
        if args.command == "convert":
            summary = convert_workbook(args.file, args.out, progress=_print_progress)
            _print_summary(summary, "sheets")
            if summary.outputs:
                print("Next steps:")
                print(f"  techroadmap upload --dir {args.out}")
                print(f"  techroadmap upload --file {args.out}/<sheet>.csv --name \"Tech Stack Name\"")
            return 0

        _check_source(args)
        store = _open_store(args.dry_run)
        if args.command == "import":
            summary = import_workbook(args.file, store, progress=_print_progress)
        elif args.dir:
            summary = upload_directory(args.dir, store, progress=_print_progress)
        else:
            summary = upload_csv_file(
                args.file,
                args.name,
                store,
                description=args.description,
                progress=_print_progress,
            )
        _print_summary(summary, "tech stacks")
        return 0
    except (SourceNotFound, UnreadableSource) as e:
        logger.error("{}", e)
        print(f"[ERROR] {e}")
        return 1
    except StoreUnavailable as e:
        logger.error("{}", e)
        print(f"[ERROR] Store unavailable: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
