from __future__ import annotations
"""
Configuration for the tech-stack roadmap service.

Settings are plain module constants, overridable through environment
variables.  The pydantic schemas shared by the API and the ingestion
pipeline live at the bottom of this module.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Paths
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CSV_OUT_DIR = Path("csv-output")
LOG_DIR = Path(os.getenv("LOG_DIR", str(PROJECT_ROOT / "logs")))

# Store
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "tech-stack-roadmap")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

TECH_STACKS = "techstacks"
ROADMAPS = "roadmaps"

# Publishing (GitHub Pages)
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
GITHUB_USERNAME = os.getenv("GITHUB_USERNAME", "niat-web")
GITHUB_REPO = os.getenv("GITHUB_REPO", "Roadmaps")
GITHUB_BRANCH = os.getenv("GITHUB_BRANCH", "main")

# HTTP hardening
HTTP_CONNECT_TIMEOUT = 3.0
HTTP_READ_TIMEOUT = 15.0
HTTP_USER_AGENT = "techroadmap-publisher/1.0"

# API server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5000"))

# Completion states, lowest priority first
STATUS_YET_TO_START = "Yet to Start"
STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"
STATUS_PRIORITY: Dict[str, int] = {
    STATUS_YET_TO_START: 0,
    STATUS_IN_PROGRESS: 1,
    STATUS_COMPLETED: 2,
}
CompletionStatus = Literal["Yet to Start", "In Progress", "Completed"]

# Checked in order; the first family with a hit wins
STATUS_KEYWORDS: List[Tuple[str, List[str]]] = [
    (STATUS_COMPLETED, ["complete", "done", "finish"]),
    (STATUS_IN_PROGRESS, ["progress", "ongoing", "partial"]),
]

# Header synonyms (case-insensitive substring match)
HEADER_SYNONYMS: Dict[str, List[str]] = {
    "topic": ["topic", "topics", "technology"],
    "subTopics": ["sub-topic", "subtopic", "sub-topics", "subtopics"],
    "projects": [
        "project",
        "task",
        "app",
        "project/app to build",
        "projects/apps built",
        "application",
    ],
    "status": ["status", "status of completion", "completion"],
}
HEADER_FIELDS: Tuple[str, ...] = ("topic", "subTopics", "projects", "status")
TOPIC_EXCLUDE_MARKER = "sub"

DEFAULT_HEADER_LABELS: Dict[str, str] = {
    "topic": "Topic",
    "subTopics": "Sub-Topics",
    "projects": "Projects",
    "status": "Status",
}

# Sheets (or CSV files) with these names are never ingested
SKIPPED_SHEET_NAMES = {"readme", "instructions"}

# Characters not allowed in converted CSV file names
UNSAFE_FILENAME_CHARS = r'[/\\?%*:|"<>]'


@dataclass(frozen=True)
class IngestProfile:
    """Knobs that differ between the workbook and the CSV ingestion paths."""

    name: str
    carry_forward_topic: bool
    exclude_sub_from_topic: bool
    projects_label: str = DEFAULT_HEADER_LABELS["projects"]

    def default_labels(self) -> Dict[str, str]:
        labels = dict(DEFAULT_HEADER_LABELS)
        labels["projects"] = self.projects_label
        return labels


WORKBOOK_PROFILE = IngestProfile(
    name="workbook",
    carry_forward_topic=True,
    exclude_sub_from_topic=True,
    projects_label="Project / Task",
)
CSV_PROFILE = IngestProfile(
    name="csv",
    carry_forward_topic=False,
    exclude_sub_from_topic=False,
)


# Pydantic schemas
class _Stripped(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)


def _dedup_by_name(entries: List["SubItem"]) -> List["SubItem"]:
    seen: Dict[str, SubItem] = {}
    for entry in entries:
        seen.setdefault(entry.name, entry)
    return list(seen.values())


class SubItem(_Stripped):
    name: str = Field(min_length=1)


class RoadmapItem(_Stripped):
    id: Optional[str] = Field(default=None, alias="_id")
    topic: str = Field(min_length=1)
    subTopics: List[SubItem] = Field(default_factory=list)
    projects: List[SubItem] = Field(default_factory=list)
    completionStatus: CompletionStatus = STATUS_YET_TO_START

    @field_validator("subTopics", "projects")
    @classmethod
    def _unique_names(cls, value: List[SubItem]) -> List[SubItem]:
        return _dedup_by_name(value)


class RoadmapItemUpdate(_Stripped):
    topic: Optional[str] = Field(default=None, min_length=1)
    subTopics: Optional[List[SubItem]] = None
    projects: Optional[List[SubItem]] = None
    completionStatus: Optional[CompletionStatus] = None

    @field_validator("subTopics", "projects")
    @classmethod
    def _unique_names(cls, value: Optional[List[SubItem]]) -> Optional[List[SubItem]]:
        return None if value is None else _dedup_by_name(value)


class TechStackHeaders(_Stripped):
    topic: str = DEFAULT_HEADER_LABELS["topic"]
    subTopics: str = DEFAULT_HEADER_LABELS["subTopics"]
    projects: str = DEFAULT_HEADER_LABELS["projects"]
    status: str = DEFAULT_HEADER_LABELS["status"]


def _check_unique_topics(items: Optional[List[RoadmapItem]]) -> None:
    if not items:
        return
    topics = [item.topic for item in items]
    dupes = sorted({t for t in topics if topics.count(t) > 1})
    if dupes:
        raise ValueError(f"Duplicate roadmap topics: {', '.join(dupes)}")


class TechStackCreate(_Stripped):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    headers: TechStackHeaders = Field(default_factory=TechStackHeaders)
    roadmapItems: List[RoadmapItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _topics_unique(self) -> "TechStackCreate":
        _check_unique_topics(self.roadmapItems)
        return self


class TechStackUpdate(_Stripped):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    headers: Optional[TechStackHeaders] = None
    roadmapItems: Optional[List[RoadmapItem]] = None

    @model_validator(mode="after")
    def _topics_unique(self) -> "TechStackUpdate":
        _check_unique_topics(self.roadmapItems)
        return self


class Role(_Stripped):
    title: str = Field(min_length=1)
    techStacks: List[str] = Field(default_factory=list)


class RoadmapCreate(_Stripped):
    companyName: str = Field(min_length=1)
    role: Optional[str] = None
    techStacks: List[str] = Field(default_factory=list)
    publishedUrl: str = Field(min_length=1)
    filename: str = Field(min_length=1)
    isConsolidated: bool = False
    roles: List[Role] = Field(default_factory=list)
    createdDate: Optional[datetime] = None

    @model_validator(mode="after")
    def _role_required(self) -> "RoadmapCreate":
        if self.isConsolidated and self.roles:
            self.role = self.role or "Consolidated"
        elif not self.role:
            raise ValueError("Path `role` is required.")
        return self


class RoadmapUpdate(_Stripped):
    companyName: Optional[str] = Field(default=None, min_length=1)
    role: Optional[str] = Field(default=None, min_length=1)
    techStacks: Optional[List[str]] = None
    publishedUrl: Optional[str] = Field(default=None, min_length=1)
    filename: Optional[str] = Field(default=None, min_length=1)
    isConsolidated: Optional[bool] = None
    roles: Optional[List[Role]] = None


class PublishRequest(_Stripped):
    filename: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
