from typing import Optional

from adapters.base_adapter import BaseAdapter, Page, split_url_path, text_of
from adapters.enricher import ImageCover, LabeledSectionGenres, MetadataEnricher, absolute_url
from models import SiteSource
from normalizer import chapter_label_from_slug, split_chapter_text
from schemas import PageExtract, ParsedLocation


class NovelBinAdapter(BaseAdapter):
    """
    Adapter for NovelBin.

    Chapter URLs come in two shapes:
    ``/b/<novel>/c/<chapter>`` and the older ``/b/<novel>/<chapter>``.
    """

    name = SiteSource.NOVELBIN.value
    hosts = ("novelbin.com",)
    enricher = MetadataEnricher(
        cover_strategies=[
            ImageCover("div.book img", pattern=r"/novel/"),
        ],
        genre_strategies=[
            LabeledSectionGenres("ul.info.info-meta > li", "h3", "genre:"),
        ],
    )

    def try_parse_url(self, url: str) -> Optional[ParsedLocation]:
        split = split_url_path(url)
        if split is None:
            return None
        normalized_url, parts = split

        if len(parts) < 3 or parts[0] != "b":
            return None

        novel_slug = parts[1]
        chapter_parts = parts[2:]
        if chapter_parts[0] == "c":
            chapter_parts = chapter_parts[1:]
        if not chapter_parts:
            return None

        chapter_slug = "/".join(chapter_parts)
        return ParsedLocation(
            novel_key=novel_slug,
            chapter_label=chapter_label_from_slug(chapter_slug),
            chapter_slug=chapter_slug,
            url=normalized_url,
        )

    def extract_from_page(self, page: Page) -> PageExtract:
        document = page.document
        novel_anchor = document.css("a.novel-title")
        chapter_anchor = document.css("a.chr-title")

        chapter_text = text_of(chapter_anchor.css(".chr-text")) or text_of(chapter_anchor)
        chapter_label, chapter_title = split_chapter_text(chapter_text)

        return PageExtract(
            novel_name=text_of(novel_anchor),
            novel_url=absolute_url(novel_anchor.attrib.get("href"), page.origin),
            chapter_label=chapter_label,
            chapter_title=chapter_title,
        )
