from __future__ import annotations

"""
FastAPI application for tech stacks, roadmaps and roadmap publishing.

- Every response uses the envelope ``{"success": bool, "data" | "error", "count"?}``
- The store and the publisher are created once per app and reached via
  ``app.state``; tests pass an in-memory store to :func:`create_app`
- Handlers are thin: validation lives in the pydantic models and the
  document shaping in :mod:`techroadmap.mapping`
"""

import re
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import (
    ROADMAPS,
    TECH_STACKS,
    HealthResponse,
    PublishRequest,
    RoadmapCreate,
    RoadmapItem,
    RoadmapItemUpdate,
    RoadmapUpdate,
    TechStackCreate,
    TechStackUpdate,
)
from .errors import NotFound, PersistenceError, PublishError, StoreUnavailable
from .mapping import (
    apply_roadmap_update,
    apply_tech_stack_update,
    item_document,
    merge_item_update,
    roadmap_document,
    tech_stack_document,
    tech_stack_summary,
)
from .publish import GitHubPagesPublisher
from .sink import utcnow
from .store import DESCENDING, DocumentStore, MongoStore

# =============================================================================
# Envelope + dependencies
# =============================================================================

def ok(data, status_code: int = 200, count: Optional[int] = None, **extra) -> JSONResponse:
    body = {"success": True}
    if count is not None:
        body["count"] = count
    body["data"] = data
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def fail(error, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_publisher(request: Request) -> GitHubPagesPublisher:
    return request.app.state.publisher


def _load(store: DocumentStore, collection: str, doc_id: str, label: str) -> dict:
    doc = store.find_one(collection, {"_id": doc_id})
    if doc is None:
        raise NotFound(f"{label} not found")
    return doc


# =============================================================================
# Tech stacks
# =============================================================================

tech_stacks = APIRouter(prefix="/api/tech-stacks", tags=["tech-stacks"])


@tech_stacks.get("")
def list_tech_stacks(store: DocumentStore = Depends(get_store)):
    docs = store.find(TECH_STACKS, projection=["name"])
    return ok([tech_stack_summary(d) for d in docs], count=len(docs))


@tech_stacks.post("")
def create_tech_stack(payload: TechStackCreate, store: DocumentStore = Depends(get_store)):
    created = store.insert_one(TECH_STACKS, tech_stack_document(payload))
    logger.info('Created tech stack "{}"', created["name"])
    return ok(created, status_code=201)


@tech_stacks.delete("/all")
def delete_all_tech_stacks(store: DocumentStore = Depends(get_store)):
    removed = store.delete_many(TECH_STACKS)
    logger.warning("Deleted all {} tech stacks", removed)
    return ok({}, message="All tech stacks have been deleted successfully")


@tech_stacks.get("/name/{name}")
def get_tech_stack_by_name(name: str, store: DocumentStore = Depends(get_store)):
    doc = store.find_one(TECH_STACKS, {"name": name})
    if doc is None:
        raise NotFound("Tech stack not found")
    return ok(doc)


@tech_stacks.get("/{stack_id}")
def get_tech_stack(stack_id: str, store: DocumentStore = Depends(get_store)):
    return ok(_load(store, TECH_STACKS, stack_id, "Tech stack"))


@tech_stacks.put("/{stack_id}")
def update_tech_stack(
    stack_id: str,
    payload: TechStackUpdate,
    store: DocumentStore = Depends(get_store),
):
    doc = apply_tech_stack_update(_load(store, TECH_STACKS, stack_id, "Tech stack"), payload)
    store.replace_one(TECH_STACKS, stack_id, doc)
    return ok(doc)


@tech_stacks.delete("/{stack_id}")
def delete_tech_stack(stack_id: str, store: DocumentStore = Depends(get_store)):
    if not store.delete_one(TECH_STACKS, stack_id):
        raise NotFound("Tech stack not found")
    return ok({})


def _topic_taken(items: list, topic: str, exclude_id: Optional[str] = None) -> bool:
    return any(i.get("topic") == topic and i.get("_id") != exclude_id for i in items)


def _save_items(store: DocumentStore, doc: dict, items: list) -> dict:
    doc["roadmapItems"] = items
    doc["updatedAt"] = utcnow()
    store.replace_one(TECH_STACKS, doc["_id"], doc)
    return doc


@tech_stacks.post("/{stack_id}/roadmap-item")
def add_roadmap_item(
    stack_id: str,
    payload: RoadmapItem,
    store: DocumentStore = Depends(get_store),
):
    doc = _load(store, TECH_STACKS, stack_id, "Tech stack")
    items = list(doc.get("roadmapItems", []))
    if _topic_taken(items, payload.topic):
        raise HTTPException(status_code=400, detail="Roadmap item with this topic already exists")
    items.append(item_document(payload))
    return ok(_save_items(store, doc, items))


@tech_stacks.put("/{stack_id}/roadmap-item/{item_id}")
def update_roadmap_item(
    stack_id: str,
    item_id: str,
    payload: RoadmapItemUpdate,
    store: DocumentStore = Depends(get_store),
):
    doc = _load(store, TECH_STACKS, stack_id, "Tech stack")
    items = list(doc.get("roadmapItems", []))
    index = next((n for n, i in enumerate(items) if i.get("_id") == item_id), None)
    if index is None:
        raise NotFound("Roadmap item not found")
    if payload.topic and _topic_taken(items, payload.topic, exclude_id=item_id):
        raise HTTPException(status_code=400, detail="Roadmap item with this topic already exists")
    items[index] = merge_item_update(items[index], payload)
    return ok(_save_items(store, doc, items))


@tech_stacks.delete("/{stack_id}/roadmap-item/{item_id}")
def delete_roadmap_item(stack_id: str, item_id: str, store: DocumentStore = Depends(get_store)):
    doc = _load(store, TECH_STACKS, stack_id, "Tech stack")
    items = [i for i in doc.get("roadmapItems", []) if i.get("_id") != item_id]
    return ok(_save_items(store, doc, items))


# =============================================================================
# Roadmaps
# =============================================================================

roadmaps = APIRouter(prefix="/api/roadmaps", tags=["roadmaps"])
NEWEST_FIRST = [("createdDate", DESCENDING)]


def _contains(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


@roadmaps.get("")
def list_roadmaps(store: DocumentStore = Depends(get_store)):
    docs = store.find(ROADMAPS, sort=NEWEST_FIRST)
    return ok(docs, count=len(docs))


@roadmaps.post("")
def create_roadmap(payload: RoadmapCreate, store: DocumentStore = Depends(get_store)):
    created = store.insert_one(ROADMAPS, roadmap_document(payload))
    logger.info("Created roadmap for {} / {}", created["companyName"], created["role"])
    return ok(created, status_code=201)


@roadmaps.get("/consolidated")
def consolidated_roadmaps(store: DocumentStore = Depends(get_store)):
    docs = store.find(ROADMAPS, {"isConsolidated": True}, sort=NEWEST_FIRST)
    return ok(docs, count=len(docs))


@roadmaps.get("/company/{company_name}")
def roadmaps_by_company(company_name: str, store: DocumentStore = Depends(get_store)):
    docs = store.find(ROADMAPS, {"companyName": _contains(company_name)}, sort=NEWEST_FIRST)
    return ok(docs, count=len(docs))


@roadmaps.get("/role/{role}")
def roadmaps_by_role(role: str, store: DocumentStore = Depends(get_store)):
    flt = {"$or": [{"role": _contains(role)}, {"roles.title": _contains(role)}]}
    docs = store.find(ROADMAPS, flt, sort=NEWEST_FIRST)
    return ok(docs, count=len(docs))


@roadmaps.get("/{roadmap_id}")
def get_roadmap(roadmap_id: str, store: DocumentStore = Depends(get_store)):
    return ok(_load(store, ROADMAPS, roadmap_id, "Roadmap"))


@roadmaps.put("/{roadmap_id}")
def update_roadmap(
    roadmap_id: str,
    payload: RoadmapUpdate,
    store: DocumentStore = Depends(get_store),
):
    doc = apply_roadmap_update(_load(store, ROADMAPS, roadmap_id, "Roadmap"), payload)
    store.replace_one(ROADMAPS, roadmap_id, doc)
    return ok(doc)


@roadmaps.delete("/{roadmap_id}")
def delete_roadmap(roadmap_id: str, store: DocumentStore = Depends(get_store)):
    if not store.delete_one(ROADMAPS, roadmap_id):
        raise NotFound("Roadmap not found")
    return ok({})


# =============================================================================
# Publishing
# =============================================================================

github = APIRouter(prefix="/api/github", tags=["publish"])


@github.post("/upload")
def upload_roadmap(
    payload: PublishRequest,
    publisher: GitHubPagesPublisher = Depends(get_publisher),
):
    if not payload.filename or not payload.content:
        raise HTTPException(status_code=400, detail="Filename and content are required")
    result = publisher.publish(payload.filename, payload.content, payload.description)
    return ok(result["response"], status_code=201, html_url=result["url"])


@github.get("/roadmaps")
def published_roadmaps(publisher: GitHubPagesPublisher = Depends(get_publisher)):
    return ok(publisher.list_published())


# =============================================================================
# Application
# =============================================================================

def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return fail(exc.detail, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        messages = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return fail(messages, 400)

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound):
        return fail(str(exc), 404)

    @app.exception_handler(PersistenceError)
    async def _persistence_error(request: Request, exc: PersistenceError):
        if exc.conflict:
            return fail("Tech stack with this name already exists", 400)
        logger.error("Store write failed on {}: {}", request.url.path, exc)
        return fail("Server Error", 500)

    @app.exception_handler(PublishError)
    async def _publish_error(request: Request, exc: PublishError):
        logger.error("Publish failed: {}", exc)
        return fail(str(exc), 500)

    @app.exception_handler(Exception)
    async def _server_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on {}: {}", request.url.path, exc)
        return fail("Server Error", 500)


def create_app(
    store: Optional[DocumentStore] = None,
    publisher: Optional[GitHubPagesPublisher] = None,
) -> FastAPI:
    """
    Build the application.  Without an explicit ``store`` a MongoDB store
    is created from configuration when the app starts.
    """
    app = FastAPI(title="Tech Stack Roadmaps API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.store = store
    app.state.publisher = publisher or GitHubPagesPublisher()

    @app.on_event("startup")
    def startup_event() -> None:
        if app.state.store is not None:
            return
        mongo = MongoStore.from_config()
        app.state.store = mongo
        try:
            mongo.ping()
        except (StoreUnavailable, PersistenceError) as e:
            logger.error("MongoDB connection error: {}", e)

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "API is running..."

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="healthy")

    app.include_router(tech_stacks)
    app.include_router(roadmaps)
    app.include_router(github)
    _install_error_handlers(app)
    return app


app = create_app()
