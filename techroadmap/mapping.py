from __future__ import annotations

"""
Conversions between API payloads and store documents.

The API validates request bodies with the pydantic models from
:mod:`techroadmap.config`; this module turns them into the document
shape kept in the store (ids for roadmap items, timestamps) so that
``api.py`` stays a thin request/response layer.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from .config import (
    RoadmapCreate,
    RoadmapItem,
    RoadmapItemUpdate,
    RoadmapUpdate,
    TechStackCreate,
    TechStackUpdate,
)
from .sink import utcnow
from .store import new_id


def item_document(item: RoadmapItem) -> dict:
    """Store document for one roadmap item, minting an id when it has none."""
    doc = item.model_dump(by_alias=True, exclude_none=True)
    doc["_id"] = item.id or new_id()
    return doc


def merge_item_update(current: dict, update: RoadmapItemUpdate) -> dict:
    """Shallow merge of the provided fields onto an existing item document."""
    merged = dict(current)
    merged.update(update.model_dump(exclude_unset=True, exclude_none=True))
    return merged


def tech_stack_document(payload: TechStackCreate, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    return {
        "name": payload.name,
        "description": payload.description or "",
        "headers": payload.headers.model_dump(),
        "roadmapItems": [item_document(i) for i in payload.roadmapItems],
        "createdAt": now,
        "updatedAt": now,
    }


def apply_tech_stack_update(current: dict, update: TechStackUpdate) -> dict:
    doc = dict(current)
    fields = update.model_dump(exclude_unset=True, exclude_none=True)
    if "roadmapItems" in fields:
        fields["roadmapItems"] = [item_document(i) for i in update.roadmapItems or []]
    if update.headers is not None:
        fields["headers"] = update.headers.model_dump()
    doc.update(fields)
    doc["updatedAt"] = utcnow()
    return doc


def roadmap_document(payload: RoadmapCreate) -> dict:
    doc = payload.model_dump()
    created = payload.createdDate or utcnow()
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    doc["createdDate"] = created
    return doc


def apply_roadmap_update(current: dict, update: RoadmapUpdate) -> dict:
    doc = dict(current)
    fields = update.model_dump(exclude_unset=True, exclude_none=True)
    if update.roles is not None:
        fields["roles"] = [r.model_dump() for r in update.roles]
    doc.update(fields)
    return doc


def tech_stack_summary(doc: dict) -> Dict[str, str]:
    return {"_id": doc["_id"], "name": doc.get("name", "")}

