"""Cover and genre extraction from novel landing pages."""
import logging
import re
from typing import List, Optional, Sequence
from urllib.parse import urljoin

from scrapy import Selector

from normalizer import normalize_whitespace
from schemas import NovelMeta

logger = logging.getLogger(__name__)

# Lazy-load attributes are read before src
LAZY_IMAGE_ATTRS = ("data-src", "data-original", "data-lazy-src", "src")

BACKGROUND_IMAGE_PATTERN = re.compile(r'background-image\s*:\s*url\(([^)]+)\)', re.IGNORECASE)


class EnrichmentError(Exception):
    """Raised when a landing page cannot be fetched."""


def absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve ``href`` against ``base_url``; blank input gives None."""
    if not href or not href.strip():
        return None
    return urljoin(base_url, href.strip())


def node_text(node) -> str:
    """Whitespace-normalized text content of a selector node."""
    if node is None:
        return ""
    return normalize_whitespace(node.xpath("string()").get(""))


# ============================================================================
# Cover strategies
# ============================================================================

class ImageCover:
    """First element matching ``selector``, reading the first non-empty of ``attrs``."""

    def __init__(self, selector: str, attrs: Sequence[str] = LAZY_IMAGE_ATTRS, pattern: Optional[str] = None):
        self.selector = selector
        self.attrs = tuple(attrs)
        self.pattern = re.compile(pattern, re.IGNORECASE) if pattern else None

    def find(self, document: Selector, base_url: str, expected_title: Optional[str] = None) -> Optional[str]:
        node = document.css(self.selector)
        if not node:
            return None
        node = node[0]
        for attr in self.attrs:
            url = absolute_url(node.attrib.get(attr), base_url)
            if url:
                if self.pattern and not self.pattern.search(url):
                    return None
                return url
        return None


class AltMatchCover:
    """Image whose ``alt`` equals the novel's title."""

    def __init__(self, selector: str = "img[alt][src]"):
        self.selector = selector

    def find(self, document: Selector, base_url: str, expected_title: Optional[str] = None) -> Optional[str]:
        if not expected_title:
            return None
        for node in document.css(self.selector):
            if (node.attrib.get("alt") or "").strip() == expected_title:
                url = absolute_url(node.attrib.get("src"), base_url)
                if url:
                    return url
        return None


class BackgroundImageCover:
    """``background-image: url(...)`` in an element's inline style."""

    def __init__(self, selector: str):
        self.selector = selector

    def find(self, document: Selector, base_url: str, expected_title: Optional[str] = None) -> Optional[str]:
        style = document.css(self.selector).attrib.get("style") or ""
        match = BACKGROUND_IMAGE_PATTERN.search(style)
        if not match:
            return None
        raw = match.group(1).strip().strip("'\"")
        return absolute_url(raw, base_url)


class LinkCover:
    """``href`` of a link pointing at the full-size cover."""

    def __init__(self, selector: str, attr: str = "href"):
        self.selector = selector
        self.attr = attr

    def find(self, document: Selector, base_url: str, expected_title: Optional[str] = None) -> Optional[str]:
        return absolute_url(document.css(self.selector).attrib.get(self.attr), base_url)


# ============================================================================
# Genre strategies
# ============================================================================

class LabeledSectionGenres:
    """
    Genre links inside the section whose label reads ``label_text``.

    Returns None when no section carries the label, and an empty list when
    the section exists but holds no links.
    """

    def __init__(self, section: str, label: str, label_text: str, links: str = "a"):
        self.section = section
        self.label = label
        self.label_text = label_text.strip().lower()
        self.links = links

    def find(self, document: Selector) -> Optional[List[str]]:
        for section in document.css(self.section):
            label = section.css(self.label)
            if not label:
                continue
            if node_text(label[0]).lower() != self.label_text:
                continue
            genres = [node_text(link) for link in section.css(self.links)]
            return [genre for genre in genres if genre]
        return None


class LinkPatternGenres:
    """Text of every link matching ``selector``, deduplicated in page order."""

    def __init__(self, selector: str):
        self.selector = selector

    def find(self, document: Selector) -> Optional[List[str]]:
        genres = []
        for link in document.css(self.selector):
            genre = node_text(link)
            if genre and genre not in genres:
                genres.append(genre)
        return genres or None


class MetadataEnricher:
    """
    Extract cover art and genres through ordered fallback chains.

    Each chain is tried in order and the first strategy that finds
    something wins.
    """

    def __init__(self, cover_strategies: Sequence = (), genre_strategies: Sequence = ()):
        self.cover_strategies = list(cover_strategies)
        self.genre_strategies = list(genre_strategies)

    def find_cover(self, document: Selector, base_url: str, expected_title: Optional[str] = None) -> Optional[str]:
        for strategy in self.cover_strategies:
            url = strategy.find(document, base_url, expected_title)
            if url:
                return url
        return None

    def find_genres(self, document: Selector) -> Optional[List[str]]:
        for strategy in self.genre_strategies:
            genres = strategy.find(document)
            if genres is not None:
                return genres
        return None

    def extract(self, document: Selector, base_url: str, expected_title: Optional[str] = None) -> NovelMeta:
        """
        Extract metadata from a parsed landing page.

        Never raises for missing structure.

        Args:
            document: Parsed landing page
            base_url: URL the page was fetched from
            expected_title: Novel title, used to pick the right cover image

        Returns:
            NovelMeta with cover URL and genres (None when not found)
        """
        return NovelMeta(
            cover_url=self.find_cover(document, base_url, expected_title),
            genres=self.find_genres(document),
        )

    async def fetch(self, fetcher, url: str, expected_title: Optional[str] = None) -> NovelMeta:
        """
        Fetch a landing page and extract its metadata.

        Raises:
            EnrichmentError: On a non-success response
        """
        response = await fetcher.fetch(url)
        if not response.ok:
            raise EnrichmentError(f"Novel page fetch failed: {response.status}")

        document = Selector(text=response.text)
        meta = self.extract(document, url, expected_title)
        logger.debug(f"Landing page {url}: cover={meta.cover_url} genres={meta.genres}")
        return meta
