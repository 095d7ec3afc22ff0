from __future__ import annotations

"""
Cell and status normalization used by the ingestion pipeline.

Spreadsheet cells arrive as strings, numbers or blanks (``None``/NaN
depending on the reader).  The helpers here turn them into text without
touching embedded line breaks, split multi-line cells into entries, and
map free-text completion values onto the three canonical states.
"""

import math
import re
from typing import List, Optional

from .config import (
    STATUS_KEYWORDS,
    STATUS_PRIORITY,
    STATUS_YET_TO_START,
)


# ---------------------------
# Cell helpers
# ---------------------------

LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def cell_text(value) -> str:
    """
    Render a raw cell value as text.

    Blanks (``None``, NaN) become ``""``.  Whole floats lose their
    trailing ``.0`` so a numeric topic such as ``3`` reads back as
    ``"3"``.  Strings are returned verbatim, line breaks included.
    """
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return value if isinstance(value, str) else str(value)


def is_blank(value) -> bool:
    return cell_text(value).strip() == ""


def split_lines(value) -> List[str]:
    """
    Split a cell on line breaks into trimmed, non-empty entries.

    A cell without any line break yields a single entry.
    """
    text = cell_text(value)
    return [part.strip() for part in LINE_BREAK_RE.split(text) if part.strip()]


def clean_header(value) -> str:
    return cell_text(value).strip()


# ---------------------------
# Completion status
# ---------------------------

def normalize_status(value: Optional[object]) -> str:
    """
    Map an arbitrary status value to a canonical completion state.

    Lower-cases the text and checks the keyword families in order:
    anything mentioning complete/done/finish is ``Completed``, then
    progress/ongoing/partial is ``In Progress``.  Everything else,
    including blanks, is ``Yet to Start``.  Because the completed family
    is checked first, ``"Partially complete"`` is ``Completed``.
    """
    text = cell_text(value).lower()
    if not text.strip():
        return STATUS_YET_TO_START
    for status, keywords in STATUS_KEYWORDS:
        if any(k in text for k in keywords):
            return status
    return STATUS_YET_TO_START


def merge_status(current: str, incoming: str) -> str:
    """
    Combine two canonical states, keeping the more advanced one.

    Order is ``Yet to Start`` < ``In Progress`` < ``Completed``; a later
    lower-priority signal never downgrades the current state.
    """
    if STATUS_PRIORITY.get(incoming, 0) > STATUS_PRIORITY.get(current, 0):
        return incoming
    return current