"""Field extractors: pull image, description, author, categories and date out of a raw feed item

Every field has an ordered list of strategies tried until one yields a
non-empty value. A strategy that finds nothing, or trips over malformed
markup, leaves the field empty; extraction never fails an item.
"""
import re
import html
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterable, List, Optional

from bs4 import BeautifulSoup

from feedvault.extractors.policy import (
    ResolvedPolicy,
    AutoImage,
    EnclosureImage,
    MediaThumbnailImage,
    MediaContentImage,
    ContentImgImage,
    RegexImage,
    NoImage,
)
from feedvault.models.article import RawFeedItem, ExtractedFields
from feedvault.models.source import FeedSource, DescriptionSource

logger = logging.getLogger(__name__)

ELLIPSIS = "..."

_IMG_SRC = re.compile(r'<img\b[^>]*?\bsrc\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE)
_WHITESPACE = re.compile(r'\s+')

# Tried in order after the feed's custom format, RFC 822 and ISO 8601
STANDARD_DATE_FORMATS = (
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M %z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%d %b %Y %H:%M:%S %z",
    "%A, %d %B %Y %H:%M:%S %z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M%z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%B %d, %Y",
    "%Y-%m-%d",
)

_EXTRACTION_ERRORS = (AttributeError, TypeError, ValueError, KeyError, IndexError)


def _attempt(strategy: Callable, *args) -> Any:
    """Run one strategy; malformed markup counts as "nothing found"."""
    try:
        return strategy(*args)
    except _EXTRACTION_ERRORS as e:
        logger.debug(f"Extraction strategy {strategy.__name__} failed: {e}")
        return None


def _text(value: Any) -> str:
    """Flatten the shapes feed parsers use for a value into one string."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        for key in ('value', 'href', 'url', 'term', 'name'):
            if value.get(key):
                return str(value[key]).strip()
        return ""
    if isinstance(value, (list, tuple)):
        for element in value:
            text = _text(element)
            if text:
                return text
        return ""
    return str(value).strip()


def _mapped(item: RawFeedItem, policy: ResolvedPolicy, field_name: str) -> Any:
    key = policy.field_mappings.get(field_name)
    if not key:
        return None
    return item.extras.get(key)


def richest_html_block(item: RawFeedItem) -> str:
    """Longest of the content, description and summary blocks."""
    candidates = [block for block in [*item.content, item.description, item.summary] if block]
    return max(candidates, key=len, default="")


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------

def _image_from_enclosure(item: RawFeedItem, strategy=None) -> Optional[str]:
    for enclosure in item.enclosures:
        href = _text(enclosure.get('href') or enclosure.get('url'))
        media_type = (enclosure.get('type') or '').lower()
        if href and (not media_type or media_type.startswith('image/')):
            return href
    return None


def _image_from_media_thumbnail(item: RawFeedItem, strategy=None) -> Optional[str]:
    for thumbnail in item.mediaThumbnails:
        url = _text(thumbnail.get('url'))
        if url:
            return url
    return None


def _image_from_media_content(item: RawFeedItem, strategy=None) -> Optional[str]:
    for media in item.mediaContent:
        medium = (media.get('medium') or '').lower()
        media_type = (media.get('type') or '').lower()
        url = _text(media.get('url'))
        if url and (medium == 'image' or media_type.startswith('image/')):
            return url
    return None


def _image_from_content_img(item: RawFeedItem, strategy=None) -> Optional[str]:
    match = _IMG_SRC.search(richest_html_block(item))
    if not match:
        return None
    return html.unescape(match.group(1)).strip() or None


def _image_from_regex(item: RawFeedItem, strategy: RegexImage) -> Optional[str]:
    match = strategy.pattern.search(richest_html_block(item))
    if not match:
        return None
    url = match.group(1) if strategy.pattern.groups else match.group(0)
    return html.unescape(url or '').strip() or None


def _image_auto(item: RawFeedItem, strategy=None) -> Optional[str]:
    for candidate in (
        _image_from_enclosure,
        _image_from_media_thumbnail,
        _image_from_media_content,
        _image_from_content_img,
    ):
        url = _attempt(candidate, item)
        if url:
            return url
    return None


def _image_none(item: RawFeedItem, strategy=None) -> Optional[str]:
    return None


_IMAGE_STRATEGIES = {
    AutoImage: _image_auto,
    EnclosureImage: _image_from_enclosure,
    MediaThumbnailImage: _image_from_media_thumbnail,
    MediaContentImage: _image_from_media_content,
    ContentImgImage: _image_from_content_img,
    RegexImage: _image_from_regex,
    NoImage: _image_none,
}


def extract_image(item: RawFeedItem, policy: ResolvedPolicy) -> Optional[str]:
    """Image URL per the policy's strategy, or None when nothing matches."""
    mapped = _text(_mapped(item, policy, 'image'))
    if mapped:
        return mapped
    strategy = policy.image
    return _attempt(_IMAGE_STRATEGIES[type(strategy)], item, strategy) or None


# ---------------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------------

def strip_html(text: str) -> str:
    """Remove tags, decode entities and collapse whitespace."""
    if not text:
        return ""
    if '<' not in text and '&' not in text:
        return _WHITESPACE.sub(' ', text).strip()
    soup = BeautifulSoup(text, 'html.parser')
    return _WHITESPACE.sub(' ', soup.get_text(' ')).strip()


def _drop_partial_markup(head: str) -> str:
    """Trim a trailing unclosed tag or entity left by a cut through raw HTML"""
    tag_start = head.rfind('<')
    if tag_start > head.rfind('>'):
        head = head[:tag_start]
    entity_start = head.rfind('&')
    if entity_start > head.rfind(';') and not any(ch.isspace() for ch in head[entity_start:]):
        head = head[:entity_start]
    return head.rstrip()


def truncate_description(text: str, max_length: Optional[int], markup: bool = False) -> str:
    """
    Shorten text to at most max_length characters, ellipsis included.

    The cut lands on the last whitespace at or before the limit so words are
    never split; a single overlong word is cut on a character boundary. With
    markup=True the limit counts raw HTML characters and the cut never ends
    inside a tag or entity.

    Examples:
        >>> truncate_description("The quick brown fox jumps", 20)
        'The quick brown...'
    """
    if not max_length or len(text) <= max_length:
        return text

    budget = max_length - len(ELLIPSIS)
    if budget <= 0:
        return text[:max_length]

    window = text[:budget + 1]
    cut = max((i for i, ch in enumerate(window) if ch.isspace()), default=-1)
    head = text[:cut].rstrip() if cut > 0 else ""
    if not head:
        head = text[:budget]
    if markup:
        head = _drop_partial_markup(head)
    return head + ELLIPSIS


def _description_blocks(item: RawFeedItem, source: DescriptionSource) -> Iterable[str]:
    if source == DescriptionSource.DESCRIPTION:
        return [item.description]
    if source == DescriptionSource.SUMMARY:
        return [item.summary]
    if source == DescriptionSource.CONTENT:
        return list(item.content)
    return [item.description, item.summary, *item.content]


def extract_description(item: RawFeedItem, policy: ResolvedPolicy) -> str:
    """First non-empty description block, optionally stripped, then truncated."""
    blocks = [_text(_mapped(item, policy, 'description'))]
    blocks.extend(_description_blocks(item, policy.description_source))

    for block in blocks:
        text = strip_html(block) if policy.strip_html else (block or '').strip()
        if text:
            return truncate_description(text, policy.max_description_length, markup=not policy.strip_html)
    return ""


# ---------------------------------------------------------------------------
# Author, categories
# ---------------------------------------------------------------------------

def extract_author(item: RawFeedItem, policy: ResolvedPolicy) -> str:
    for candidate in (
        _mapped(item, policy, 'author'),
        item.author,
        item.authorDetail.get('name'),
    ):
        author = _text(candidate)
        if author:
            return strip_html(author)
    return ""


def merge_categories(*groups: Iterable[str]) -> List[str]:
    """Union preserving first-seen order and case; duplicates compared case-insensitively."""
    seen = set()
    merged = []
    for group in groups:
        for category in group:
            if not isinstance(category, str):
                continue
            category = category.strip()
            key = category.casefold()
            if category and key not in seen:
                seen.add(key)
                merged.append(category)
    return merged


def extract_categories(item: RawFeedItem, policy: ResolvedPolicy, feed: FeedSource) -> List[str]:
    mapped = _mapped(item, policy, 'categories')
    if isinstance(mapped, str):
        mapped = [part for part in mapped.split(',')]
    elif isinstance(mapped, (list, tuple)):
        mapped = [_text(part) for part in mapped]
    else:
        mapped = []
    return merge_categories(mapped, item.categories, [feed.category] if feed.category else [])


# ---------------------------------------------------------------------------
# Date
# ---------------------------------------------------------------------------

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_rfc822(raw: str) -> Optional[datetime]:
    return parsedate_to_datetime(raw)


def _parse_iso8601(raw: str) -> Optional[datetime]:
    if raw.endswith(('Z', 'z')):
        raw = raw[:-1] + '+00:00'
    return datetime.fromisoformat(raw)


def parse_date(raw: str, custom_format: Optional[str] = None, parsed_tuple: Any = None) -> Optional[datetime]:
    """
    Parse a feed date string into an aware UTC datetime.

    Args:
        raw: Date string as found in the feed
        custom_format: Feed-level strptime format tried first
        parsed_tuple: UTC time tuple already produced by the feed parser, last resort

    Returns:
        UTC datetime, or None when nothing parses
    """
    raw = (raw or '').strip()

    if raw:
        if custom_format:
            try:
                return _as_utc(datetime.strptime(raw, custom_format))
            except ValueError:
                logger.debug(f"Date {raw!r} does not match custom format {custom_format!r}")

        for parser in (_parse_rfc822, _parse_iso8601):
            parsed = _attempt(parser, raw)
            if parsed:
                return _as_utc(parsed)

        for date_format in STANDARD_DATE_FORMATS:
            try:
                return _as_utc(datetime.strptime(raw, date_format))
            except ValueError:
                continue

    if parsed_tuple:
        try:
            return datetime(*tuple(parsed_tuple)[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            pass

    return None


def extract_date(item: RawFeedItem, policy: ResolvedPolicy) -> Optional[datetime]:
    mapped = _text(_mapped(item, policy, 'date'))
    if mapped:
        parsed = parse_date(mapped, policy.date_format)
        if parsed:
            return parsed
    return parse_date(item.published, policy.date_format, item.publishedParsed)


def extract_fields(item: RawFeedItem, policy: ResolvedPolicy, feed: FeedSource) -> ExtractedFields:
    """Run every field extractor over one item."""
    return ExtractedFields(
        image=extract_image(item, policy),
        description=extract_description(item, policy),
        author=extract_author(item, policy),
        categories=extract_categories(item, policy, feed),
        publishedAt=extract_date(item, policy),
    )
