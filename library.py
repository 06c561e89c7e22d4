"""Library upsert, merge, import/export and management operations."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from models import ReadingStatus
from normalizer import StatusNormalizer
from schemas import (
    CanonicalRecord, LibraryEntry, ExportPayload,
    EXPORT_APP, EXPORT_VERSION, entry_id,
)
from storage import LibraryStore

logger = logging.getLogger(__name__)

Library = Dict[str, Dict[str, Any]]

IMPORT_MODES = ("merge", "replace")

SORT_KEYS = ("updated_desc", "updated_asc", "title_asc", "title_desc")


class ImportFormatError(ValueError):
    """Raised when an import payload is neither an export file nor a library map."""


def utc_now_iso() -> str:
    """Current time as ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_time(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp.

    Naive timestamps are read as UTC. Missing or unparseable values give None.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# Merge engine
# ============================================================================

def choose_by_updated_at(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pick the winning entry of a conflict.

    The entry with the later ``updated_at`` wins, ties go to incoming. If
    either timestamp is missing or unparseable, incoming wins so imports are
    never dropped because of malformed legacy data.
    """
    existing_time = parse_iso_time(existing.get("updated_at"))
    incoming_time = parse_iso_time(incoming.get("updated_at"))

    if existing_time is not None and incoming_time is not None:
        return incoming if incoming_time >= existing_time else existing
    return incoming


def normalize_library_statuses(library: Library) -> bool:
    """
    Rewrite every entry's status into the canonical vocabulary in place.

    Returns:
        True if any entry changed
    """
    changed = False
    for entry in library.values():
        if not isinstance(entry, dict):
            continue
        before = entry.get("status")
        after = StatusNormalizer.normalize_status(before)
        if before != after:
            entry["status"] = after
            changed = True
    return changed


def merge_libraries(existing: Optional[Library], incoming: Optional[Library]) -> Library:
    """
    Reconcile two whole libraries.

    Entries only in ``incoming`` are added as they are. For entries in both,
    fields are layered existing < incoming < winner, except ``genres``,
    which takes incoming's list when it is a list, else existing's, else
    an empty list. Statuses of the result are normalized.

    Args:
        existing: Library currently stored
        incoming: Library being imported

    Returns:
        New merged library
    """
    existing = existing if isinstance(existing, dict) else {}
    incoming = incoming if isinstance(incoming, dict) else {}

    merged: Library = {
        key: dict(entry) if isinstance(entry, dict) else entry
        for key, entry in existing.items()
    }

    for key, incoming_entry in incoming.items():
        if not isinstance(incoming_entry, dict):
            logger.warning(f"Skipping non-object import entry: {key}")
            continue

        existing_entry = merged.get(key)
        if not isinstance(existing_entry, dict):
            merged[key] = dict(incoming_entry)
            continue

        winner = choose_by_updated_at(existing_entry, incoming_entry)

        if isinstance(incoming_entry.get("genres"), list):
            genres = incoming_entry["genres"]
        elif isinstance(existing_entry.get("genres"), list):
            genres = existing_entry["genres"]
        else:
            genres = []

        merged[key] = {
            **existing_entry,
            **incoming_entry,
            **winner,
            "genres": genres,
        }

    normalize_library_statuses(merged)
    return merged


# Scalar fields that must be strings (or None) once imported
STRING_FIELDS = (
    "id", "source", "novel_key", "novel_name", "novel_url", "cover_url",
    "chapter_label", "chapter_title", "link", "status", "updated_at",
)


def clean_import_entry(key: str, entry: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy an imported entry, forcing scalar fields to strings.

    Numbers become their text; other non-string values become None.
    """
    cleaned = {**entry, "id": key}
    for field in STRING_FIELDS:
        value = cleaned.get(field)
        if value is None or isinstance(value, str):
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            cleaned[field] = str(value)
        else:
            cleaned[field] = None
    return cleaned


def parse_import_payload(payload: Any) -> Library:
    """
    Extract the library map from an import payload.

    A payload carrying either export marker (``app`` or ``data``) must be a
    complete export file. Anything else is read as a raw library map, which
    must hold at least one entry object unless it is empty.

    Raises:
        ImportFormatError: If the payload matches neither shape
    """
    if not isinstance(payload, dict):
        raise ImportFormatError("Import file format not recognized: expected a JSON object.")

    if "app" in payload or "data" in payload:
        if payload.get("app") != EXPORT_APP:
            raise ImportFormatError(f"Import file was not exported by {EXPORT_APP}.")
        version = payload.get("version", EXPORT_VERSION)
        if version != EXPORT_VERSION:
            raise ImportFormatError(f"Unsupported export version: {version}.")
        library = payload.get("data")
        if not isinstance(library, dict):
            raise ImportFormatError("Import file format not recognized: 'data' must be an object.")
    else:
        library = payload

    cleaned: Library = {}
    for key, entry in library.items():
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object import entry: {key}")
            continue
        cleaned[key] = clean_import_entry(key, entry)

    if library and not cleaned:
        raise ImportFormatError("Import file format not recognized: no library entries found.")
    return cleaned


def build_export_payload(library: Library) -> Dict[str, Any]:
    """Wrap a library in the export file format."""
    payload = ExportPayload(exported_at=utc_now_iso(), data=library)
    return payload.model_dump(by_alias=True)


def export_filename(now: Optional[datetime] = None) -> str:
    """Default export file name, e.g. ``lnTracker-export-2024-06-01.json``."""
    now = now or datetime.now(timezone.utc)
    return f"{EXPORT_APP}-export-{now.strftime('%Y-%m-%d')}.json"


# ============================================================================
# Listing helpers
# ============================================================================

def entry_title(entry: Dict[str, Any]) -> str:
    """Display title of an entry."""
    return str(entry.get("novel_name") or entry.get("novel_key") or "(unknown novel)")


def genres_text(entry: Dict[str, Any]) -> str:
    genres = entry.get("genres")
    if isinstance(genres, list) and genres:
        return ", ".join(str(g) for g in genres)
    if isinstance(genres, str):
        return genres.strip()
    return ""


def count_by_status(library: Library) -> Dict[str, int]:
    """Count entries per canonical status, plus ``all``."""
    counts = {"all": 0}
    counts.update({status.value: 0 for status in ReadingStatus})
    for entry in library.values():
        if not isinstance(entry, dict):
            continue
        counts["all"] += 1
        counts[StatusNormalizer.normalize_status(entry.get("status"))] += 1
    return counts


def matches_query(entry: Dict[str, Any], query: str) -> bool:
    if not query:
        return True
    haystack = " ".join(
        str(part) for part in (
            entry.get("novel_name"),
            entry.get("novel_key"),
            entry.get("source"),
            entry.get("chapter_label"),
            entry.get("chapter_title"),
            genres_text(entry),
        ) if part
    ).lower()
    return query in haystack


def filter_entries(
        library: Library,
        query: Optional[str] = None,
        status: Optional[str] = None,
        sort: str = "updated_desc",
) -> List[Tuple[str, Dict[str, Any]]]:
    """
    Filter and sort library entries.

    Args:
        library: Library map
        query: Case-insensitive substring over name, key, source, chapter and genres
        status: Canonical status, or None / "all" for every entry
        sort: One of updated_desc, updated_asc, title_asc, title_desc

    Returns:
        List of (id, entry) pairs
    """
    query = (query or "").strip().lower()
    wanted = None
    if status and status != "all":
        wanted = StatusNormalizer.normalize_status(status)

    items = []
    for key, entry in library.items():
        if not isinstance(entry, dict):
            continue
        if wanted and StatusNormalizer.normalize_status(entry.get("status")) != wanted:
            continue
        if not matches_query(entry, query):
            continue
        items.append((key, entry))

    if sort == "updated_asc":
        items.sort(key=lambda item: str(item[1].get("updated_at") or ""))
    elif sort == "title_asc":
        items.sort(key=lambda item: entry_title(item[1]).casefold())
    elif sort == "title_desc":
        items.sort(key=lambda item: entry_title(item[1]).casefold(), reverse=True)
    else:
        items.sort(key=lambda item: str(item[1].get("updated_at") or ""), reverse=True)

    return items


# ============================================================================
# Library service
# ============================================================================

class LibraryService:
    """
    Upsert, import/export and management operations over the stored library.

    Every operation is a read-modify-write of the whole map; concurrent
    writers are not serialized.
    """

    def __init__(self, library_store: LibraryStore):
        self.library_store = library_store

    async def get_entry(self, source: str, novel_key: str) -> Optional[Dict[str, Any]]:
        return await self.library_store.get_entry(source, novel_key)

    async def upsert(self, record: CanonicalRecord) -> Dict[str, Any]:
        """
        Merge one freshly scraped record into its stored entry.

        Optional fields take the incoming value when present and otherwise
        keep the stored one. An incoming genre list always wins, even when
        empty. Status is never changed by a scrape, ``link`` always follows
        the visited page and ``updated_at`` is refreshed on every call.

        Args:
            record: Canonical record from an adapter

        Returns:
            The stored entry
        """
        key = entry_id(record.source, record.novel_key)

        library = await self.library_store.load()
        existing = library.get(key)
        if not isinstance(existing, dict):
            existing = {}

        def fill(field: str):
            value = getattr(record, field)
            return value if value is not None else existing.get(field)

        stored_status = existing.get("status")
        if isinstance(stored_status, str) and stored_status.strip():
            status = stored_status
        else:
            status = ReadingStatus.READING.value

        if isinstance(record.genres, list):
            genres = record.genres
        elif isinstance(existing.get("genres"), list):
            genres = existing["genres"]
        else:
            genres = []

        entry = LibraryEntry(
            id=key,
            source=record.source,
            novel_key=record.novel_key,
            novel_name=record.novel_name or existing.get("novel_name"),
            novel_url=fill("novel_url"),
            cover_url=fill("cover_url"),
            genres=genres,
            chapter_label=fill("chapter_label"),
            chapter_title=fill("chapter_title"),
            link=record.link,
            status=status,
            updated_at=utc_now_iso(),
        )

        library[key] = entry.model_dump(mode="json")
        await self.library_store.save(library)

        logger.info(
            f"Updated {key}: chapter={entry.chapter_label} "
            f"title={entry.novel_name!r} status={entry.status}"
        )
        return library[key]

    async def load(self, migrate: bool = True) -> Library:
        """
        Load the library, rewriting legacy statuses.

        The rewritten library is persisted when anything changed.
        """
        library = await self.library_store.load()
        if migrate and normalize_library_statuses(library):
            logger.info("Migrated legacy statuses in stored library")
            await self.library_store.save(library)
        return library

    async def list_entries(
            self,
            query: Optional[str] = None,
            status: Optional[str] = None,
            sort: str = "updated_desc",
    ) -> Tuple[List[Tuple[str, Dict[str, Any]]], int, Dict[str, int]]:
        """
        List entries for display.

        Returns:
            Tuple of (filtered items, library size, counts by status)
        """
        library = await self.load()
        items = filter_entries(library, query=query, status=status, sort=sort)
        return items, len(library), count_by_status(library)

    async def set_status(self, key: str, status: str) -> Dict[str, Any]:
        """
        Change an entry's reading status.

        Raises:
            KeyError: If the entry does not exist
        """
        library = await self.library_store.load()
        entry = library.get(key)
        if not isinstance(entry, dict):
            raise KeyError(key)

        entry["status"] = StatusNormalizer.normalize_status(status)
        entry["updated_at"] = utc_now_iso()
        await self.library_store.save(library)

        logger.info(f"Set status of {key} to {entry['status']}")
        return entry

    async def delete_entry(self, key: str) -> Dict[str, Any]:
        """
        Remove an entry.

        Raises:
            KeyError: If the entry does not exist
        """
        library = await self.library_store.load()
        if key not in library:
            raise KeyError(key)

        removed = library.pop(key)
        await self.library_store.save(library)

        logger.info(f"Deleted {key}")
        return removed

    async def export_library(self) -> Dict[str, Any]:
        """Build the export payload of the stored library."""
        library = await self.library_store.load()
        return build_export_payload(library)

    async def import_library(self, payload: Any, mode: str = "merge") -> Library:
        """
        Import a payload into the stored library.

        Nothing is written when the payload is rejected.

        Args:
            payload: Decoded JSON of an export file or a raw library map
            mode: ``merge`` (default) or ``replace``

        Returns:
            The library as stored after the import

        Raises:
            ImportFormatError: If the payload or mode is not recognized
        """
        if mode not in IMPORT_MODES:
            raise ImportFormatError(f"Unknown import mode: {mode}")

        incoming = parse_import_payload(payload)

        if mode == "replace":
            result = incoming
            normalize_library_statuses(result)
        else:
            existing = await self.library_store.load()
            result = merge_libraries(existing, incoming)

        await self.library_store.save(result)

        logger.info(f"Imported {len(incoming)} entries ({mode}); library now holds {len(result)}")
        return result
