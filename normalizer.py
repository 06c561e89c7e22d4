"""Text, chapter label and status normalization utilities."""
import re
from typing import Optional, Tuple
import logging

from models import ReadingStatus

logger = logging.getLogger(__name__)


# Boilerplate some sites append to chapter headings
NOISE_PATTERNS = [
    re.compile(r'read .* online for free', re.IGNORECASE),
]

CHAPTER_SLUG_PATTERN = re.compile(
    r'^chapter-(\d+(?:\.\d+)?)(?:-part-(\d+))?(?=-|$)',
    re.IGNORECASE,
)

# "Chapter 53: Title" / "Chapter 53"
COLON_HEADING_PATTERN = re.compile(r'^chapter\s+(.+?)(?::\s*(.*))?$', re.IGNORECASE)

# "Chapter 53: Title" / "Ch. 53 - Title", then bare "Chapter 53"
DASH_HEADING_PATTERNS = [
    re.compile(r'^(?:chapter|ch\.?)\s+(.+?)(?::|-)\s*(.*)$', re.IGNORECASE),
    re.compile(r'^(?:chapter|ch\.?)\s+(.+)$', re.IGNORECASE),
]


def normalize_whitespace(text: Optional[str]) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip()


def normalize_host(host: str) -> str:
    """Lowercase a hostname and drop a leading ``www.``."""
    return re.sub(r'^www\.', '', (host or '').strip().lower())


def strip_noise(text: Optional[str]) -> Optional[str]:
    """Remove known boilerplate substrings; empty results become None."""
    if not text:
        return None
    for pattern in NOISE_PATTERNS:
        text = pattern.sub('', text)
    return text.strip() or None


def chapter_label_from_slug(slug: str) -> str:
    """
    Derive a chapter label from a URL slug.

    ``chapter-12`` gives ``12`` and ``chapter-53-part-2`` gives
    ``53 part 2``. Any other slug is returned verbatim.

    Args:
        slug: Chapter part of the URL path

    Returns:
        Chapter label
    """
    match = CHAPTER_SLUG_PATTERN.match(slug or '')
    if not match:
        return slug
    number, part = match.group(1), match.group(2)
    if part:
        return f"{number} part {part}"
    return number


def split_chapter_text(text: Optional[str], allow_dash: bool = False) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a chapter heading into (chapter_label, chapter_title).

    Whitespace is collapsed first. If the heading does not start with a
    chapter marker, the whole cleaned text becomes the title and the label
    stays None. Noise is stripped from both parts after the split.

    Args:
        text: Raw heading text
        allow_dash: Also accept ``Ch.`` prefixes and ``-`` separators

    Returns:
        Tuple of label and title, either may be None
    """
    cleaned = normalize_whitespace(text)
    if not cleaned:
        return None, None

    label = None
    title = cleaned
    patterns = DASH_HEADING_PATTERNS if allow_dash else [COLON_HEADING_PATTERN]

    for pattern in patterns:
        match = pattern.match(cleaned)
        if match:
            groups = match.groups()
            label = (groups[0] or '').strip() or None
            title = None
            if len(groups) > 1:
                title = (groups[1] or '').strip() or None
            break

    return strip_noise(label), strip_noise(title)


class StatusNormalizer:
    """
    Map stored or legacy status strings onto the canonical reading statuses.

    Total and idempotent: unknown input falls back to ``reading``.
    """

    STATUS_MAPPINGS = {
        # Legacy values
        'current': ReadingStatus.READING.value,
        'completed': ReadingStatus.FINISHED.value,
        'complete': ReadingStatus.FINISHED.value,
        'onhold': ReadingStatus.ON_HOLD.value,
        'hold': ReadingStatus.ON_HOLD.value,

        # Canonical values
        'reading': ReadingStatus.READING.value,
        'on-hold': ReadingStatus.ON_HOLD.value,
        'dropped': ReadingStatus.DROPPED.value,
        'finished': ReadingStatus.FINISHED.value,
    }

    @classmethod
    def normalize_status(cls, raw) -> str:
        """
        Normalize a single status value.

        Args:
            raw: Stored status, any type

        Returns:
            One of reading, on-hold, dropped, finished
        """
        clean = str(raw or '').strip().lower()
        return cls.STATUS_MAPPINGS.get(clean, ReadingStatus.READING.value)
