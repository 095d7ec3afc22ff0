from __future__ import annotations

"""
Header resolution for roadmap sheets.

Roadmap spreadsheets come from many hands, so the column holding the
topic might be called "Topics", "Technology" or "Topic Name".  The
resolver scans the header row left to right and, for each logical field,
picks the first column whose lower-cased text contains one of the
field's synonyms.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from loguru import logger

from .config import (
    HEADER_FIELDS,
    HEADER_SYNONYMS,
    TOPIC_EXCLUDE_MARKER,
    IngestProfile,
    TechStackHeaders,
)
from .normalize import clean_header


@dataclass
class ResolvedHeaders:
    """Column index per logical field (``None`` when absent) plus display labels."""

    columns: Dict[str, Optional[int]] = field(default_factory=dict)
    labels: TechStackHeaders = field(default_factory=TechStackHeaders)

    @property
    def topic(self) -> Optional[int]:
        return self.columns.get("topic")

    @property
    def sub_topics(self) -> Optional[int]:
        return self.columns.get("subTopics")

    @property
    def projects(self) -> Optional[int]:
        return self.columns.get("projects")

    @property
    def status(self) -> Optional[int]:
        return self.columns.get("status")

    @property
    def has_topic(self) -> bool:
        return self.topic is not None


def find_column(
    headers: Sequence[str],
    synonyms: Sequence[str],
    exclude: Sequence[str] = (),
) -> Optional[int]:
    """
    Return the index of the first header containing any synonym.

    Matching is case-insensitive and by substring.  Headers containing
    any of the ``exclude`` markers are never matched.
    """
    wanted = [s.lower() for s in synonyms]
    excluded = [e.lower() for e in exclude]
    for idx, header in enumerate(headers):
        text = header.lower()
        if not text:
            continue
        if any(marker in text for marker in excluded):
            continue
        if any(s in text for s in wanted):
            return idx
    return None


def resolve_headers(raw_headers: Sequence[object], profile: IngestProfile) -> ResolvedHeaders:
    """
    Map the four logical fields onto columns of ``raw_headers``.

    ``profile.exclude_sub_from_topic`` keeps "Sub-Topics" from being
    taken as the topic column.  Display labels use the literal header
    text where a column matched and the profile's default otherwise.
    """
    headers: List[str] = [clean_header(h) for h in raw_headers]
    defaults = profile.default_labels()

    columns: Dict[str, Optional[int]] = {}
    labels: Dict[str, str] = {}
    for name in HEADER_FIELDS:
        exclude = [TOPIC_EXCLUDE_MARKER] if name == "topic" and profile.exclude_sub_from_topic else []
        idx = find_column(headers, HEADER_SYNONYMS[name], exclude=exclude)
        columns[name] = idx
        labels[name] = headers[idx] if idx is not None else defaults[name]

    resolved = ResolvedHeaders(columns=columns, labels=TechStackHeaders(**labels))
    logger.info(
        'Found headers: Topic="{}", Subtopic="{}", Project="{}", Status="{}"',
        resolved.labels.topic,
        resolved.labels.subTopics,
        resolved.labels.projects,
        resolved.labels.status,
    )
    return resolved
