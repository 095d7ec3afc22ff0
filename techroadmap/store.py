from __future__ import annotations

"""
Document store used by the ingestion pipeline and the API.

Both implementations expose the same small contract over named
collections of JSON-like documents whose ``_id`` is an ObjectId hex
string:

* :class:`MongoStore` talks to MongoDB through ``pymongo``;
* :class:`InMemoryStore` keeps everything in dictionaries and is what
  the tests and ``--dry-run`` runs use.

Filters understand plain equality, ``{"$regex": ..., "$options": "i"}``,
``$or`` and dotted paths through arrays (``roles.title``), which is all
the service needs.
"""

import copy
import re
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from loguru import logger
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from .config import MONGO_DB, MONGO_TIMEOUT_MS, MONGO_URI, TECH_STACKS
from .errors import PersistenceError, StoreUnavailable

Filter = Mapping[str, object]
Sort = Sequence[Tuple[str, int]]

# Fields with a unique index, per collection
UNIQUE_FIELDS: Dict[str, List[str]] = {TECH_STACKS: ["name"]}


class DocumentStore(Protocol):
    def ping(self) -> None: ...

    def find_one(self, collection: str, filter: Filter) -> Optional[dict]: ...

    def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        projection: Optional[Sequence[str]] = None,
    ) -> List[dict]: ...

    def insert_one(self, collection: str, doc: dict) -> dict: ...

    def replace_one(self, collection: str, doc_id: str, doc: dict) -> bool: ...

    def delete_one(self, collection: str, doc_id: str) -> bool: ...

    def delete_many(self, collection: str, filter: Optional[Filter] = None) -> int: ...


def new_id() -> str:
    return str(ObjectId())


# ---------------------------
# Filter evaluation (in-memory)
# ---------------------------

def _values_at(doc: object, path: str) -> List[object]:
    values = [doc]
    for part in path.split("."):
        nxt: List[object] = []
        for value in values:
            if isinstance(value, list):
                nxt.extend(el[part] for el in value if isinstance(el, dict) and part in el)
            elif isinstance(value, dict) and part in value:
                nxt.append(value[part])
        values = nxt
    return values


def _candidates(values: List[object]) -> Iterator[object]:
    # arrays match on the whole array and on each element
    for value in values:
        yield value
        if isinstance(value, list):
            yield from value


def _condition_holds(values: List[object], cond: object) -> bool:
    if isinstance(cond, Mapping) and "$regex" in cond:
        flags = re.IGNORECASE if "i" in str(cond.get("$options", "")) else 0
        pattern = re.compile(str(cond["$regex"]), flags)
        return any(isinstance(v, str) and pattern.search(v) for v in _candidates(values))
    return any(v == cond for v in _candidates(values))


def matches(doc: Mapping[str, object], filter: Optional[Filter]) -> bool:
    if not filter:
        return True
    for key, cond in filter.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):  # type: ignore[union-attr]
                return False
        elif not _condition_holds(_values_at(doc, key), cond):
            return False
    return True


def _sort_key(field: str):
    def key(doc: dict):
        values = _values_at(doc, field)
        value = values[0] if values else None
        return (value is not None, value)
    return key


def _project(doc: dict, projection: Optional[Sequence[str]]) -> dict:
    if not projection:
        return doc
    return {k: v for k, v in doc.items() if k == "_id" or k in projection}


class InMemoryStore:
    """Dictionary-backed store honouring the unique ``name`` index."""

    def __init__(self, unique_fields: Optional[Dict[str, List[str]]] = None) -> None:
        self._collections: Dict[str, Dict[str, dict]] = defaultdict(dict)
        self._unique = UNIQUE_FIELDS if unique_fields is None else unique_fields

    def ping(self) -> None:
        return None

    def _check_unique(self, collection: str, doc: dict, doc_id: str) -> None:
        for field in self._unique.get(collection, []):
            for other_id, other in self._collections[collection].items():
                if other_id != doc_id and other.get(field) == doc.get(field):
                    raise PersistenceError(
                        f"E11000 duplicate key error collection: {collection} "
                        f"index: {field}_1 dup key: {{ {field}: {doc.get(field)!r} }}",
                        conflict=True,
                    )

    def find_one(self, collection: str, filter: Filter) -> Optional[dict]:
        for doc in self._collections[collection].values():
            if matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    def find(self, collection, filter=None, sort=None, projection=None) -> List[dict]:
        docs = [d for d in self._collections[collection].values() if matches(d, filter)]
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=_sort_key(field), reverse=direction == DESCENDING)
        return [copy.deepcopy(_project(d, projection)) for d in docs]

    def insert_one(self, collection: str, doc: dict) -> dict:
        stored = copy.deepcopy(doc)
        stored["_id"] = str(stored.get("_id") or new_id())
        self._check_unique(collection, stored, stored["_id"])
        self._collections[collection][stored["_id"]] = stored
        return copy.deepcopy(stored)

    def replace_one(self, collection: str, doc_id: str, doc: dict) -> bool:
        if doc_id not in self._collections[collection]:
            return False
        stored = copy.deepcopy(doc)
        stored["_id"] = doc_id
        self._check_unique(collection, stored, doc_id)
        self._collections[collection][doc_id] = stored
        return True

    def delete_one(self, collection: str, doc_id: str) -> bool:
        return self._collections[collection].pop(doc_id, None) is not None

    def delete_many(self, collection: str, filter: Optional[Filter] = None) -> int:
        doomed = [i for i, d in self._collections[collection].items() if matches(d, filter)]
        for doc_id in doomed:
            del self._collections[collection][doc_id]
        return len(doomed)


# ---------------------------
# MongoDB
# ---------------------------

@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError as e:
        raise PersistenceError(f"{action} failed: {e}", conflict=True) from e
    except ConnectionFailure as e:
        raise StoreUnavailable(f"{action} failed, MongoDB unreachable: {e}") from e
    except PyMongoError as e:
        raise PersistenceError(f"{action} failed: {e}") from e


def _object_id(doc_id: object) -> Optional[ObjectId]:
    try:
        return ObjectId(str(doc_id))
    except (InvalidId, TypeError):
        return None


def _to_mongo_filter(filter: Optional[Filter]) -> Optional[dict]:
    """Convert string ids to ObjectIds; ``None`` means nothing can match."""
    out = dict(filter or {})
    if "_id" in out:
        oid = _object_id(out["_id"])
        if oid is None:
            return None
        out["_id"] = oid
    return out


def _from_mongo(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    return doc


class MongoStore:
    """:class:`DocumentStore` backed by a MongoDB database."""

    def __init__(self, client: MongoClient, db_name: str = MONGO_DB) -> None:
        self.client = client
        self.db = client[db_name]

    @classmethod
    def from_config(
        cls,
        uri: str = MONGO_URI,
        db_name: str = MONGO_DB,
        timeout_ms: int = MONGO_TIMEOUT_MS,
    ) -> "MongoStore":
        return cls(MongoClient(uri, serverSelectionTimeoutMS=timeout_ms), db_name)

    def ping(self) -> None:
        with _translate_errors("ping"):
            self.client.admin.command("ping")
            for collection, fields in UNIQUE_FIELDS.items():
                for field in fields:
                    self.db[collection].create_index([(field, ASCENDING)], unique=True)
        logger.info("MongoDB connected ({})", self.db.name)

    def find_one(self, collection: str, filter: Filter) -> Optional[dict]:
        query = _to_mongo_filter(filter)
        if query is None:
            return None
        with _translate_errors(f"find_one on {collection}"):
            return _from_mongo(self.db[collection].find_one(query))

    def find(self, collection, filter=None, sort=None, projection=None) -> List[dict]:
        query = _to_mongo_filter(filter)
        if query is None:
            return []
        fields = {f: 1 for f in projection} if projection else None
        with _translate_errors(f"find on {collection}"):
            cursor = self.db[collection].find(query, fields)
            if sort:
                cursor = cursor.sort(list(sort))
            return [_from_mongo(d) for d in cursor]

    def insert_one(self, collection: str, doc: dict) -> dict:
        stored = dict(doc)
        oid = _object_id(stored.pop("_id", None)) or ObjectId()
        stored["_id"] = oid
        with _translate_errors(f"insert into {collection}"):
            self.db[collection].insert_one(stored)
        return _from_mongo(stored)

    def replace_one(self, collection: str, doc_id: str, doc: dict) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        body = {k: v for k, v in doc.items() if k != "_id"}
        with _translate_errors(f"replace in {collection}"):
            result = self.db[collection].replace_one({"_id": oid}, body)
        return result.matched_count > 0

    def delete_one(self, collection: str, doc_id: str) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        with _translate_errors(f"delete from {collection}"):
            return self.db[collection].delete_one({"_id": oid}).deleted_count > 0

    def delete_many(self, collection: str, filter: Optional[Filter] = None) -> int:
        query = _to_mongo_filter(filter)
        if query is None:
            return 0
        with _translate_errors(f"delete_many from {collection}"):
            return self.db[collection].delete_many(query).deleted_count
