import re
from typing import Optional

from adapters.base_adapter import BaseAdapter, Page, class_xpath, split_url_path, text_of
from adapters.enricher import AltMatchCover, ImageCover, LinkPatternGenres, MetadataEnricher
from models import SiteSource
from normalizer import split_chapter_text
from schemas import PageExtract, ParsedLocation

CHAPTER_NUMBER_PATTERN = re.compile(r'chapter-([0-9]+(?:\.[0-9]+)?)', re.IGNORECASE)

CHAPTER_HEADING_CLASSES = ["font-set-b18", "flex", "items-start", "!font-sans", "sm:font-set-b26"]
NOVEL_NAME_CLASSES = [
    "MuiTypography-root",
    "MuiTypography-body1",
    "text-[13px]",
    "text-gray-t0",
    "sm:text-[15px]",
    "ww-1ne0po4",
]

COVER_IMAGE_SELECTOR = 'img[src*="cdn.wuxiaworld.com/images/covers/"]'


class WuxiaWorldAdapter(BaseAdapter):
    """
    Adapter for WuxiaWorld.

    Chapter URLs look like ``/novel/<novel>/<chapter>``. The cover is on
    the chapter page itself, so only genres come from the landing page.
    """

    name = SiteSource.WUXIAWORLD.value
    hosts = ("wuxiaworld.com",)
    enricher = MetadataEnricher(
        genre_strategies=[
            LinkPatternGenres('a[href*="/novels/?genre="]'),
        ],
    )
    chapter_cover = MetadataEnricher(
        cover_strategies=[
            AltMatchCover(COVER_IMAGE_SELECTOR),
            ImageCover(COVER_IMAGE_SELECTOR, attrs=("src",)),
        ],
    )

    def try_parse_url(self, url: str) -> Optional[ParsedLocation]:
        split = split_url_path(url)
        if split is None:
            return None
        normalized_url, parts = split

        if len(parts) < 3 or parts[0].lower() != "novel":
            return None

        novel_slug, chapter_slug = parts[1], parts[2]
        match = CHAPTER_NUMBER_PATTERN.search(chapter_slug)

        return ParsedLocation(
            novel_key=novel_slug,
            chapter_label=match.group(1) if match else chapter_slug,
            chapter_slug=chapter_slug,
            url=normalized_url,
        )

    def extract_from_page(self, page: Page) -> PageExtract:
        document = page.document
        chapter_text = text_of(document.xpath(class_xpath("h4", CHAPTER_HEADING_CLASSES)))
        novel_name = text_of(document.xpath(class_xpath("p", NOVEL_NAME_CLASSES)))

        chapter_label, chapter_title = split_chapter_text(chapter_text, allow_dash=True)

        location = self.try_parse_url(page.url)
        novel_url = None
        if location is not None:
            novel_url = f"{page.origin}/novel/{location.novel_key}"

        return PageExtract(
            novel_name=novel_name,
            novel_url=novel_url,
            cover_url=self.chapter_cover.find_cover(document, page.url, novel_name),
            chapter_label=chapter_label,
            chapter_title=chapter_title,
        )

    def needs_enrichment(self, existing: Optional[dict]) -> bool:
        genres = (existing or {}).get("genres")
        return not (isinstance(genres, list) and len(genres) > 0)
