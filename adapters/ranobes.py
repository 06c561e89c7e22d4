import re
from typing import Optional

from adapters.base_adapter import BaseAdapter, Page, split_url_path
from adapters.enricher import (
    BackgroundImageCover, ImageCover, LabeledSectionGenres, LinkCover, MetadataEnricher, absolute_url,
)
from models import SiteSource
from normalizer import split_chapter_text
from schemas import PageExtract, ParsedLocation

SERIES_ID_PATTERN = re.compile(r'-(\d+)$')
CHAPTER_ID_PATTERN = re.compile(r'^(\d+)\.html$')


class RanobesAdapter(BaseAdapter):
    """
    Adapter for Ranobes.

    Chapter URLs look like ``/<series-slug>-<series-id>/<chapter-id>.html``;
    the numeric series id is the novel key. Names come from the document
    title (``Chapter N: Title | Novel``).
    """

    name = SiteSource.RANOBES.value
    hosts = ("ranobes.top", "ranobes.net")
    enricher = MetadataEnricher(
        cover_strategies=[
            BackgroundImageCover(".poster figure.cover"),
            LinkCover(".poster a.highslide[href]"),
            ImageCover(".poster img[src]", attrs=("src",)),
        ],
        genre_strategies=[
            LabeledSectionGenres(
                ".r-fullstory-s2 .mcollapse-block",
                ".mcollapse-title h4.title",
                "genres",
                links=".mcollapse-cont .links a",
            ),
        ],
    )

    def try_parse_url(self, url: str) -> Optional[ParsedLocation]:
        split = split_url_path(url)
        if split is None:
            return None
        normalized_url, parts = split

        if len(parts) < 2:
            return None

        series_match = SERIES_ID_PATTERN.search(parts[0])
        chapter_match = CHAPTER_ID_PATTERN.match(parts[1])
        if not series_match or not chapter_match:
            return None

        return ParsedLocation(
            novel_key=series_match.group(1),
            chapter_label=chapter_match.group(1),
            chapter_slug=chapter_match.group(1),
            url=normalized_url,
        )

    def _novel_url_from_speedbar(self, page: Page) -> Optional[str]:
        links = page.document.css("#dle-speedbar a[href]")
        if len(links) < 2:
            return None
        return absolute_url(links[1].attrib.get("href"), page.origin)

    def extract_from_page(self, page: Page) -> PageExtract:
        title = page.title
        pieces = [piece.strip() for piece in title.split("|")] if title else []
        chapter_part = pieces[0] if pieces else None
        novel_name = pieces[1] if len(pieces) > 1 else None

        chapter_label, chapter_title = split_chapter_text(chapter_part)

        return PageExtract(
            novel_name=novel_name or None,
            novel_url=self._novel_url_from_speedbar(page),
            chapter_label=chapter_label,
            chapter_title=chapter_title,
        )
