"""Base adapter class for all site adapters."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cached_property
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import urlsplit

from scrapy import Selector

from adapters.enricher import MetadataEnricher
from normalizer import normalize_whitespace
from schemas import CanonicalRecord, PageExtract, ParsedLocation


@dataclass
class Page:
    """A visited page: its URL and rendered markup."""
    url: str
    html: str = ""

    @cached_property
    def document(self) -> Selector:
        return Selector(text=self.html or "")

    @property
    def title(self) -> str:
        return normalize_whitespace(self.document.css("title::text").get(""))

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""


@dataclass
class SiteRegistration:
    """Entry of the site registry."""
    id: str
    matches_host: Callable[[str], bool]
    handler: Callable[[Page], Awaitable[None]] = field(repr=False)


def split_url_path(url: str) -> Optional[Tuple[str, List[str]]]:
    """
    Split an absolute http(s) URL into its normalized form and path segments.

    Returns None for anything that is not an absolute http(s) URL.
    """
    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    segments = [segment for segment in parts.path.split("/") if segment]
    return parts.geturl(), segments


def text_of(selector_list) -> Optional[str]:
    """Whitespace-normalized text of the first node, or None."""
    if not selector_list:
        return None
    return normalize_whitespace(selector_list[0].xpath("string()").get("")) or None


def class_xpath(tag: str, classes: List[str]) -> str:
    """XPath selecting ``tag`` elements carrying every class in ``classes``."""
    conditions = " and ".join(
        f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')" for name in classes
    )
    return f"//{tag}[{conditions}]"


class BaseAdapter(ABC):
    """
    Base adapter that all site adapters must inherit from.

    A visit runs parse -> extract -> (conditional) enrich -> upsert.
    """

    # Must be set by child adapters
    name: str = "base"
    hosts: Tuple[str, ...] = ()
    enricher: Optional[MetadataEnricher] = None

    def __init__(self, library, fetcher):
        """
        Initialize adapter with its collaborators.

        Args:
            library: LibraryService used for lookups and upserts
            fetcher: Page fetcher for landing pages
        """
        self.library = library
        self.fetcher = fetcher
        self.logger = logging.getLogger(f"adapters.{self.name}")

    def matches_host(self, host: str) -> bool:
        """Exact match against a normalized (lowercase, no ``www.``) hostname."""
        return host in self.hosts

    def registration(self) -> SiteRegistration:
        return SiteRegistration(id=self.name, matches_host=self.matches_host, handler=self.handle)

    @abstractmethod
    def try_parse_url(self, url: str) -> Optional[ParsedLocation]:
        """
        Match a URL against the site's chapter URL shapes.

        Must be pure and never raise.

        Args:
            url: Absolute page URL

        Returns:
            ParsedLocation, or None when the URL is not a chapter page
        """

    @abstractmethod
    def extract_from_page(self, page: Page) -> PageExtract:
        """
        Read record fields from the page markup.

        Missing elements leave their field as None.

        Args:
            page: Visited page

        Returns:
            PageExtract
        """

    def build_record(self, location: ParsedLocation, extract: PageExtract) -> CanonicalRecord:
        """Combine URL and markup data; the URL label is only a fallback."""
        return CanonicalRecord(
            source=self.name,
            novel_key=location.novel_key,
            novel_name=extract.novel_name,
            novel_url=extract.novel_url,
            cover_url=extract.cover_url,
            genres=None,
            chapter_label=extract.chapter_label or location.chapter_label,
            chapter_title=extract.chapter_title,
            link=location.url,
        )

    def needs_enrichment(self, existing: Optional[dict]) -> bool:
        """Fetch the landing page only while cover or genres are missing."""
        existing = existing or {}
        has_cover = bool(existing.get("cover_url"))
        genres = existing.get("genres")
        has_genres = isinstance(genres, list) and len(genres) > 0
        return not has_cover or not has_genres

    async def enrich(self, record: CanonicalRecord) -> CanonicalRecord:
        """
        Add cover and genres from the novel's landing page when needed.

        Fetch failures are logged and leave the record as it was.
        """
        if self.enricher is None or not record.novel_url:
            return record

        existing = await self.library.get_entry(self.name, record.novel_key)
        if not self.needs_enrichment(existing):
            return record

        try:
            meta = await self.enricher.fetch(self.fetcher, record.novel_url, expected_title=record.novel_name)
        except Exception as e:
            self.logger.warning(f"[{self.name}] enrich failed for {record.novel_url}: {e}")
            return record

        record.cover_url = meta.cover_url or record.cover_url
        record.genres = meta.genres
        return record

    async def handle(self, page: Page) -> None:
        """
        Main entry point - track the visited page if it is a chapter page.

        Args:
            page: Visited page
        """
        location = self.try_parse_url(page.url)
        if location is None:
            self.logger.debug(f"[{self.name}] not a chapter page: {page.url}")
            return

        extract = self.extract_from_page(page)
        record = self.build_record(location, extract)
        record = await self.enrich(record)
        await self.library.upsert(record)
