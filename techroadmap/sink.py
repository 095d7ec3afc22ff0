from __future__ import annotations

"""
Persist aggregated topic records as a tech stack, keyed by exact name.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

from loguru import logger

from .aggregate import TopicRecord
from .config import TECH_STACKS, TechStackHeaders
from .store import DocumentStore, new_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_roadmap_items(records: Sequence[TopicRecord]) -> list[dict]:
    """Store documents for ``records``; every item gets its own id."""
    return [{"_id": new_id(), **record.to_document()} for record in records]


def upsert_tech_stack(
    store: DocumentStore,
    name: str,
    headers: TechStackHeaders,
    records: Sequence[TopicRecord],
    description: Optional[str] = None,
) -> dict:
    """
    Create or wholesale-replace the tech stack called ``name``.

    On an existing stack ``headers`` and ``roadmapItems`` are overwritten
    (never merged) and ``description`` is replaced only when one is
    given.  Store failures propagate as ``PersistenceError``.
    """
    items = build_roadmap_items(records)
    existing = store.find_one(TECH_STACKS, {"name": name})
    now = utcnow()

    if existing is not None:
        logger.warning('Tech stack "{}" already exists. Updating...', name)
        doc = dict(existing)
        if description is not None:
            doc["description"] = description
        doc["headers"] = headers.model_dump()
        doc["roadmapItems"] = items
        doc["updatedAt"] = now
        store.replace_one(TECH_STACKS, existing["_id"], doc)
        logger.info('Tech stack "{}" updated with {} roadmap items.', name, len(items))
        return doc

    doc = {
        "name": name,
        "description": description or "",
        "headers": headers.model_dump(),
        "roadmapItems": items,
        "createdAt": now,
        "updatedAt": now,
    }
    created = store.insert_one(TECH_STACKS, doc)
    logger.info('Tech stack "{}" created with {} roadmap items.', name, len(items))
    return created
