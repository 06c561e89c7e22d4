import re
from typing import Optional

from adapters.base_adapter import BaseAdapter, Page, split_url_path, text_of
from adapters.enricher import AltMatchCover, ImageCover, LabeledSectionGenres, MetadataEnricher, absolute_url
from models import SiteSource
from normalizer import chapter_label_from_slug, normalize_whitespace, split_chapter_text
from schemas import PageExtract, ParsedLocation

CHAPTER_FILE_PATTERN = re.compile(r'^chapter-.*\.html$', re.IGNORECASE)


class NovelFullAdapter(BaseAdapter):
    """
    Adapter for NovelFull.

    Chapter URLs look like ``/<novel>/chapter-<n>.html``.
    """

    name = SiteSource.NOVELFULL.value
    hosts = ("novelfull.net", "novelfull.com")
    enricher = MetadataEnricher(
        cover_strategies=[
            AltMatchCover("img[alt][src]"),
            ImageCover('img[src^="/uploads/"][alt]'),
            ImageCover('img[src^="/uploads/"]'),
            ImageCover('img[src*="/uploads/"]'),
            ImageCover('img[src*="thumb"]'),
        ],
        genre_strategies=[
            LabeledSectionGenres(".info > div", "h3", "genre:"),
        ],
    )

    def try_parse_url(self, url: str) -> Optional[ParsedLocation]:
        split = split_url_path(url)
        if split is None:
            return None
        normalized_url, parts = split

        if len(parts) < 2:
            return None

        novel_slug, chapter_file = parts[0], parts[1]
        if not CHAPTER_FILE_PATTERN.match(chapter_file):
            return None

        chapter_slug = re.sub(r'\.html$', '', chapter_file, flags=re.IGNORECASE)
        return ParsedLocation(
            novel_key=novel_slug,
            chapter_label=chapter_label_from_slug(chapter_slug),
            chapter_slug=chapter_slug,
            url=normalized_url,
        )

    def _chapter_heading(self, page: Page) -> Optional[str]:
        # title attribute, then the first text node of .chapter-text, then all text
        chapter_anchor = page.document.css("a.chapter-title")
        candidates = (
            chapter_anchor.attrib.get("title"),
            chapter_anchor.css(".chapter-text::text").get(),
            text_of(chapter_anchor.css(".chapter-text")),
            text_of(chapter_anchor),
        )
        for candidate in candidates:
            candidate = normalize_whitespace(candidate)
            if candidate:
                return candidate
        return None

    def extract_from_page(self, page: Page) -> PageExtract:
        novel_anchor = page.document.css("a.truyen-title")
        chapter_label, chapter_title = split_chapter_text(self._chapter_heading(page))

        return PageExtract(
            novel_name=text_of(novel_anchor),
            novel_url=absolute_url(novel_anchor.attrib.get("href"), page.origin),
            chapter_label=chapter_label,
            chapter_title=chapter_title,
        )
