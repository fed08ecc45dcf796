from contextlib import asynccontextmanager
from typing import List, Optional
import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from references_backend.config import configure_logging, get_settings
from references_backend.errors import NotFound, ReferenceNotFound, StorageUnavailable
from references_backend.query_engine import QueryEngine
from references_backend.repository import ReferenceRepository
from references_backend.schemas import (
    ReferenceCreate,
    ReferenceOut,
    ReferenceUpdate,
    ReferenceWithScreenshots,
    ScreenshotCreate,
    ScreenshotOut,
    ScreenshotUpdate,
    SearchRequest,
)
from references_backend.tag_index import TagIndex
from references_database.db import SessionLocal, engine
from references_database.init_db import init_db

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    yield


# FastAPI app config
app = FastAPI(
    title="UI Reference Catalog API",
    description="Backend API for cataloging UI references and screenshots, with tag and text search.",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "References", "description": "Create, update, view, delete, search references"},
        {"name": "Screenshots", "description": "Screenshot metadata and ownership"},
        {"name": "Tags", "description": "Tag vocabulary in use"},
    ]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# DATABASE Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db=Depends(get_db)) -> ReferenceRepository:
    return ReferenceRepository(db)


def get_query_engine(repository: ReferenceRepository = Depends(get_repository)) -> QueryEngine:
    return QueryEngine(repository, strategy=settings.search_strategy)


def get_tag_index(repository: ReferenceRepository = Depends(get_repository)) -> TagIndex:
    return TagIndex(repository)


# Root Health Check
@app.get("/", summary="Health Check", tags=["General"])
def health_check():
    """Simple health check endpoint."""
    return {"message": "Healthy"}


#####################
# REFERENCE ENDPOINTS
#####################

# PUBLIC_INTERFACE
@app.post("/references/", response_model=ReferenceOut, status_code=201, summary="Create a new reference", tags=["References"])
def create_reference(reference: ReferenceCreate, repository: ReferenceRepository = Depends(get_repository)):
    """
    Create a new UI reference.
    """
    return repository.create_reference(**reference.model_dump())


# PUBLIC_INTERFACE
@app.get("/references/", response_model=List[ReferenceOut], summary="List all references", tags=["References"])
def list_references(query_engine: QueryEngine = Depends(get_query_engine)):
    """
    Get every reference, most recently updated first.
    """
    return query_engine.list_references()


# PUBLIC_INTERFACE
@app.get("/references/search", response_model=List[ReferenceOut], summary="Search references", tags=["References"])
def search_references(
    q: Optional[str] = Query(None, description="Text matched against title, description and notes"),
    tags: Optional[List[str]] = Query(None, description="Every listed tag must be present"),
    has_url: Optional[bool] = Query(None, description="Filter on presence of a non-empty URL"),
    has_screenshots: Optional[bool] = Query(None, description="Filter on owning at least one screenshot"),
    query_engine: QueryEngine = Depends(get_query_engine),
):
    """
    Search references. All supplied filters must match; results are ordered
    most recently updated first.
    """
    request = SearchRequest(query=q, tags=tags, has_url=has_url, has_screenshots=has_screenshots)
    return query_engine.search(request)


# PUBLIC_INTERFACE
@app.get("/references/{reference_id}", response_model=ReferenceWithScreenshots, summary="Get a single reference", tags=["References"])
def get_reference(reference_id: int, repository: ReferenceRepository = Depends(get_repository)):
    """
    Retrieve a reference together with the screenshots it owns.
    """
    reference = get_reference_by_id(repository, reference_id)
    if reference is None:
        raise HTTPException(status_code=404, detail="Reference not found.")
    return reference


def get_reference_by_id(repository: ReferenceRepository, reference_id: int) -> Optional[ReferenceWithScreenshots]:
    """Assembles the detail view, or None when the reference does not exist."""
    reference = repository.fetch_by_id(reference_id)
    if reference is None:
        return None
    detail = ReferenceWithScreenshots.model_validate(reference)
    detail.screenshots = [ScreenshotOut.model_validate(s) for s in repository.screenshots_for(reference_id)]
    return detail


# PUBLIC_INTERFACE
@app.put("/references/{reference_id}", response_model=ReferenceOut, summary="Update a reference", tags=["References"])
def update_reference(reference_id: int, reference_update: ReferenceUpdate, repository: ReferenceRepository = Depends(get_repository)):
    """
    Update the supplied fields of a reference.
    """
    return repository.update_reference(reference_id, **reference_update.model_dump(exclude_unset=True))


# PUBLIC_INTERFACE
@app.delete("/references/{reference_id}", status_code=204, summary="Delete a reference", tags=["References"])
def delete_reference(reference_id: int, repository: ReferenceRepository = Depends(get_repository)):
    """
    Delete a reference and every screenshot it owns.
    """
    repository.delete_reference(reference_id)
    return Response(status_code=204)


#####################
# TAG ENDPOINTS
#####################

# PUBLIC_INTERFACE
@app.get("/tags/", response_model=List[str], summary="List tags in use", tags=["Tags"])
def get_all_tags(tag_index: TagIndex = Depends(get_tag_index)):
    """
    Distinct tags across all references, sorted ascending.
    """
    return tag_index.all_tags()


#####################
# SCREENSHOT ENDPOINTS
#####################

# PUBLIC_INTERFACE
@app.post("/screenshots/", response_model=ScreenshotOut, status_code=201, summary="Register a screenshot", tags=["Screenshots"])
def create_screenshot(screenshot: ScreenshotCreate, repository: ReferenceRepository = Depends(get_repository)):
    """
    Record metadata for a stored screenshot, optionally owned by a reference.
    """
    return repository.create_screenshot(**screenshot.model_dump())


# PUBLIC_INTERFACE
@app.get("/screenshots/", response_model=List[ScreenshotOut], summary="List screenshots", tags=["Screenshots"])
def list_screenshots(
    reference_id: Optional[int] = Query(None, description="Only screenshots owned by this reference"),
    repository: ReferenceRepository = Depends(get_repository),
):
    """
    Get screenshots, newest first.
    """
    if reference_id is not None:
        return repository.screenshots_for(reference_id)
    return repository.list_screenshots()


# PUBLIC_INTERFACE
@app.get("/screenshots/independent", response_model=List[ScreenshotOut], summary="List unowned screenshots", tags=["Screenshots"])
def list_independent_screenshots(repository: ReferenceRepository = Depends(get_repository)):
    """
    Get screenshots not owned by any reference, newest first.
    """
    return repository.independent_screenshots()


# PUBLIC_INTERFACE
@app.put("/screenshots/{screenshot_id}", response_model=ScreenshotOut, summary="Update a screenshot", tags=["Screenshots"])
def update_screenshot(screenshot_id: int, screenshot_update: ScreenshotUpdate, repository: ReferenceRepository = Depends(get_repository)):
    """
    Change a screenshot's owner or alt text. A null reference_id detaches it.
    """
    return repository.update_screenshot(screenshot_id, **screenshot_update.model_dump(exclude_unset=True))


# PUBLIC_INTERFACE
@app.delete("/screenshots/{screenshot_id}", status_code=204, summary="Delete a screenshot", tags=["Screenshots"])
def delete_screenshot(screenshot_id: int, repository: ReferenceRepository = Depends(get_repository)):
    """
    Delete a screenshot record.
    """
    repository.delete_screenshot(screenshot_id)
    return Response(status_code=204)


# Error handlers
@app.exception_handler(HTTPException)
def custom_http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(ReferenceNotFound)
def reference_not_found_handler(request: Request, exc: ReferenceNotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"Reference with id {exc.entity_id} does not exist."},
    )


@app.exception_handler(NotFound)
def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"{exc.entity} not found."},
    )


@app.exception_handler(StorageUnavailable)
def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    logger.error("Storage unavailable: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage unavailable."},
    )


def serve():
    import uvicorn

    port = int(os.getenv("SERVER_PORT", "2022"))
    uvicorn.run(app, host=os.getenv("SERVER_HOST", "0.0.0.0"), port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    serve()
