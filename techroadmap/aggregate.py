from __future__ import annotations

"""
Row aggregation: from spreadsheet rows to one record per topic.

Sheets list a topic, then any number of rows of sub-topics and projects
belonging to it.  Two layouts are supported by the same routine:

* carry-forward (workbooks): the topic cell is filled only on the first
  row of a block and applies to every following row until the next
  non-empty topic cell;
* flat (CSV uploads): every row names its own topic and rows without
  one are ignored.

In both layouts a topic seen again is merged into its existing record:
sub-topics and projects are unioned by name in first-appearance order,
and the completion status only ever moves forward.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .config import STATUS_YET_TO_START
from .headers import ResolvedHeaders
from .normalize import cell_text, is_blank, merge_status, normalize_status, split_lines


class OrderedNameSet:
    """Insertion-ordered set of names with constant-time membership."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: Dict[str, None] = {}
        self.update(names)

    def add(self, name: str) -> bool:
        if name in self._names:
            return False
        self._names[name] = None
        return True

    def update(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def as_list(self) -> List[str]:
        return list(self._names)


@dataclass
class TopicRecord:
    topic: str
    sub_topics: OrderedNameSet = field(default_factory=OrderedNameSet)
    projects: OrderedNameSet = field(default_factory=OrderedNameSet)
    completion_status: str = STATUS_YET_TO_START

    def to_document(self) -> dict:
        """Shape used by the tech-stack store (``roadmapItems`` entries)."""
        return {
            "topic": self.topic,
            "subTopics": [{"name": n} for n in self.sub_topics],
            "projects": [{"name": n} for n in self.projects],
            "completionStatus": self.completion_status,
        }


def _cell(row: Sequence[object], idx: Optional[int]) -> object:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


class RowAggregator:
    """
    Fold data rows into ordered :class:`TopicRecord` objects.

    ``carry_forward_topic`` selects the workbook layout (sparse topic
    column) over the flat one.  Rows that cannot be attributed to any
    topic are skipped silently.
    """

    def __init__(self, columns: ResolvedHeaders, carry_forward_topic: bool) -> None:
        if not columns.has_topic:
            raise ValueError("A topic column is required for aggregation")
        self.columns = columns
        self.carry_forward_topic = carry_forward_topic
        self.records: Dict[str, TopicRecord] = {}
        self.current_topic: Optional[str] = None
        self.skipped_rows = 0

    def _topic_for_row(self, row: Sequence[object]) -> Optional[str]:
        topic = cell_text(_cell(row, self.columns.topic)).strip()
        if topic:
            self.current_topic = topic
            return topic
        if self.carry_forward_topic:
            return self.current_topic
        return None

    def add_row(self, row: Sequence[object]) -> Optional[TopicRecord]:
        topic = self._topic_for_row(row)
        if topic is None:
            self.skipped_rows += 1
            return None

        record = self.records.get(topic)
        if record is None:
            record = TopicRecord(topic=topic)
            self.records[topic] = record

        record.sub_topics.update(split_lines(_cell(row, self.columns.sub_topics)))
        record.projects.update(split_lines(_cell(row, self.columns.projects)))

        status_cell = _cell(row, self.columns.status)
        if not is_blank(status_cell):
            record.completion_status = merge_status(
                record.completion_status, normalize_status(status_cell)
            )
        return record

    def add_rows(self, rows: Iterable[Sequence[object]]) -> "RowAggregator":
        for row in rows:
            self.add_row(row)
        return self

    def results(self) -> List[TopicRecord]:
        """Records in first-appearance order of their topic."""
        return list(self.records.values())


def aggregate_rows(
    rows: Iterable[Sequence[object]],
    columns: ResolvedHeaders,
    carry_forward_topic: bool,
) -> List[TopicRecord]:
    return RowAggregator(columns, carry_forward_topic).add_rows(rows).results()
