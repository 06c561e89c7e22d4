"""FastAPI application - main entry point."""
from contextlib import asynccontextmanager
from typing import Any, Optional
import logging

from fastapi import FastAPI, Depends, HTTPException, Query, Body
from fastapi.responses import JSONResponse

from adapters.base_adapter import Page
from config import settings
from library import ImportFormatError, IMPORT_MODES, SORT_KEYS, export_filename
from schemas import (
    VisitRequest, VisitResponse, LibraryEntry, LibraryListResponse,
    StatusUpdateRequest, ImportResponse, SiteListResponse,
)
from tracker import Tracker, build_tracker

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

_tracker: Optional[Tracker] = None


def get_tracker() -> Tracker:
    """Dependency returning the process-wide tracker, built on first use."""
    global _tracker
    if _tracker is None:
        _tracker = build_tracker(settings)
    return _tracker


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    global _tracker
    if _tracker is not None:
        await _tracker.close()
        _tracker = None


# Create FastAPI app
app = FastAPI(
    title="Light Novel Tracker API",
    description="Tracks the chapters you read across novel sites",
    version="1.0.0",
    lifespan=lifespan,
)


# ============================================================================
# Visit Endpoints
# ============================================================================

@app.post("/visits", response_model=VisitResponse, tags=["Visits"])
async def record_visit(
    request: VisitRequest,
    tracker: Tracker = Depends(get_tracker)
):
    """
    Report a page the reader navigated to.

    The page is dispatched to the adapter registered for its host. Pages
    that are not chapter pages, or hosts without an adapter, are ignored.
    """
    handled_by = await tracker.visit(Page(url=request.url, html=request.html))
    return VisitResponse(url=request.url, handled_by=handled_by)


# ============================================================================
# Library Endpoints
# ============================================================================

@app.get("/library", response_model=LibraryListResponse, tags=["Library"])
async def list_library(
    q: Optional[str] = None,
    status: Optional[str] = None,
    sort: str = Query("updated_desc"),
    limit: Optional[int] = Query(None, ge=1),
    tracker: Tracker = Depends(get_tracker)
):
    """
    List library entries.

    Optionally filter by search term or status, and sort by update time or title.
    """
    if sort not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown sort: {sort}")

    items, total, counts = await tracker.library.list_entries(query=q, status=status, sort=sort)
    if limit is not None:
        items = items[:limit]

    return LibraryListResponse(
        items=[LibraryEntry.model_validate({**entry, "id": key}) for key, entry in items],
        total=total,
        counts=counts,
    )


@app.get("/library/{entry_id}", response_model=LibraryEntry, tags=["Library"])
async def get_entry(
    entry_id: str,
    tracker: Tracker = Depends(get_tracker)
):
    """Get a single library entry."""
    library = await tracker.library.load()
    entry = library.get(entry_id)

    if not isinstance(entry, dict):
        raise HTTPException(status_code=404, detail="Entry not found")

    return LibraryEntry.model_validate({**entry, "id": entry_id})


@app.patch("/library/{entry_id}/status", response_model=LibraryEntry, tags=["Library"])
async def update_status(
    entry_id: str,
    request: StatusUpdateRequest,
    tracker: Tracker = Depends(get_tracker)
):
    """Change the reading status of an entry. Legacy status names are accepted."""
    try:
        entry = await tracker.library.set_status(entry_id, request.status)
    except KeyError:
        raise HTTPException(status_code=404, detail="Entry not found")

    return LibraryEntry.model_validate({**entry, "id": entry_id})


@app.delete("/library/{entry_id}", tags=["Library"])
async def delete_entry(
    entry_id: str,
    tracker: Tracker = Depends(get_tracker)
):
    """Remove an entry from the library."""
    try:
        await tracker.library.delete_entry(entry_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Entry not found")

    return {"deleted": entry_id}


# ============================================================================
# Import / Export Endpoints
# ============================================================================

@app.get("/export", tags=["Import/Export"])
async def export_library(tracker: Tracker = Depends(get_tracker)):
    """Download the whole library as an export file."""
    payload = await tracker.library.export_library()
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@app.post("/import", response_model=ImportResponse, tags=["Import/Export"])
async def import_library(
    payload: Any = Body(...),
    mode: str = Query("merge"),
    tracker: Tracker = Depends(get_tracker)
):
    """
    Import an export file or a raw library map.

    ``merge`` reconciles entries by update time; ``replace`` overwrites the library.
    """
    if mode not in IMPORT_MODES:
        raise HTTPException(status_code=400, detail=f"Unknown import mode: {mode}")

    try:
        result = await tracker.library.import_library(payload, mode=mode)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    message = "Library replaced" if mode == "replace" else "Library merged"
    return ImportResponse(mode=mode, total=len(result), message=message)


# ============================================================================
# Sites
# ============================================================================

@app.get("/sites", response_model=SiteListResponse, tags=["System"])
async def list_sites(tracker: Tracker = Depends(get_tracker)):
    """List supported sites in dispatch order."""
    return SiteListResponse(items=tracker.registry.ids())


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "ln-tracker"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
