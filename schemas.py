"""Pydantic schemas for records, library entries and API payloads."""
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Any, Dict, List, Optional
from models import ReadingStatus


EXPORT_APP = "lnTracker"
EXPORT_VERSION = 1


# Record Schemas
class ParsedLocation(BaseModel):
    """Result of matching a chapter URL against a site's known shapes."""
    novel_key: str
    chapter_label: Optional[str] = None
    chapter_slug: Optional[str] = None
    url: str


class PageExtract(BaseModel):
    """Fields read from a chapter page's markup. Any of them may be missing."""
    novel_name: Optional[str] = None
    novel_url: Optional[str] = None
    cover_url: Optional[str] = None
    chapter_label: Optional[str] = None
    chapter_title: Optional[str] = None


class NovelMeta(BaseModel):
    """Secondary attributes read from a novel's landing page."""
    cover_url: Optional[str] = None
    genres: Optional[List[str]] = None


class CanonicalRecord(BaseModel):
    """
    Site-agnostic record produced by every adapter.

    ``genres`` is ``None`` when genres were not fetched on this pass and
    an empty list when they were fetched and none were found.
    """
    source: str
    novel_key: str
    novel_name: Optional[str] = None
    novel_url: Optional[str] = None
    cover_url: Optional[str] = None
    genres: Optional[List[str]] = None
    chapter_label: Optional[str] = None
    chapter_title: Optional[str] = None
    link: str


class LibraryEntry(BaseModel):
    """Persisted library entry, keyed by ``source:novel_key``."""
    id: str
    source: str
    novel_key: str
    novel_name: Optional[str] = None
    novel_url: Optional[str] = None
    cover_url: Optional[str] = None
    genres: List[str] = []
    chapter_label: Optional[str] = None
    chapter_title: Optional[str] = None
    link: Optional[str] = None
    status: str = ReadingStatus.READING.value
    updated_at: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def fill_key_from_id(cls, data: Any) -> Any:
        # Imported legacy entries may only carry their map key
        if isinstance(data, dict) and (not data.get("source") or not data.get("novel_key")):
            source, _, novel_key = str(data.get("id") or "").partition(":")
            data = {"source": source, "novel_key": novel_key or source, **{k: v for k, v in data.items() if v}}
        return data

    @field_validator("genres", mode="before")
    @classmethod
    def coerce_genres(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


# Export / Import Schemas
class ExportPayload(BaseModel):
    """Wrapped export file format."""
    app: str = EXPORT_APP
    version: int = EXPORT_VERSION
    exported_at: str = Field(..., alias="exportedAt")
    data: Dict[str, Dict[str, Any]]

    model_config = ConfigDict(populate_by_name=True)


class ImportResponse(BaseModel):
    """Result of an import."""
    mode: str
    total: int
    message: str


# API Schemas
class VisitRequest(BaseModel):
    """A page the reader navigated to."""
    url: str = Field(..., description="Absolute URL of the visited page")
    html: str = Field("", description="Page markup as rendered in the browser")


class VisitResponse(BaseModel):
    """Which adapter, if any, handled a visit."""
    url: str
    handled_by: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    """Change the reading status of an entry."""
    status: str


class LibraryListResponse(BaseModel):
    """Filtered library listing."""
    items: List[LibraryEntry]
    total: int
    counts: Dict[str, int]


class SiteListResponse(BaseModel):
    """Registered adapters in dispatch order."""
    items: List[str]


def entry_id(source: str, novel_key: str) -> str:
    """Primary key of a library entry."""
    return f"{source}:{novel_key}"
