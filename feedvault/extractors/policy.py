"""Extraction policy resolution: per-feed override -> global defaults -> built-in auto"""
import re
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Pattern, Union

from feedvault.models.source import ExtractionPolicy, ImageSource, DescriptionSource

logger = logging.getLogger(__name__)

# Canonical fields a policy may remap to another raw entry key
MAPPABLE_FIELDS = {'image', 'description', 'author', 'categories', 'date'}


# Image strategies form a closed set; the extractors dispatch on the variant type.

@dataclass(frozen=True)
class AutoImage:
    """Try every strategy in the built-in order"""


@dataclass(frozen=True)
class EnclosureImage:
    """Image enclosure element only"""


@dataclass(frozen=True)
class MediaThumbnailImage:
    """media:thumbnail element only"""


@dataclass(frozen=True)
class MediaContentImage:
    """media:content element with an image medium only"""


@dataclass(frozen=True)
class ContentImgImage:
    """First <img src> in the richest HTML block only"""


@dataclass(frozen=True)
class RegexImage:
    """Feed-supplied pattern applied to the richest HTML block"""
    pattern: Pattern


@dataclass(frozen=True)
class NoImage:
    """Never extract an image"""


ImageStrategy = Union[
    AutoImage, EnclosureImage, MediaThumbnailImage, MediaContentImage, ContentImgImage, RegexImage, NoImage
]

_SIMPLE_IMAGE_STRATEGIES = {
    ImageSource.AUTO: AutoImage(),
    ImageSource.ENCLOSURE: EnclosureImage(),
    ImageSource.MEDIA_THUMBNAIL: MediaThumbnailImage(),
    ImageSource.MEDIA_CONTENT: MediaContentImage(),
    ImageSource.CONTENT_IMG: ContentImgImage(),
    ImageSource.NONE: NoImage(),
}


@dataclass(frozen=True)
class ResolvedPolicy:
    """Immutable extraction policy for one feed for one run"""

    image: ImageStrategy = AutoImage()
    description_source: DescriptionSource = DescriptionSource.AUTO
    strip_html: bool = True
    max_description_length: Optional[int] = None
    date_format: Optional[str] = None
    field_mappings: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


PolicyLayer = Union[ExtractionPolicy, Dict[str, Any], None]


def _as_dict(layer: PolicyLayer) -> Dict[str, Any]:
    if layer is None:
        return {}
    if isinstance(layer, ExtractionPolicy):
        return layer.model_dump(exclude_none=True)
    if isinstance(layer, Mapping):
        return {k: v for k, v in layer.items() if v is not None}
    logger.warning(f"Ignoring extraction policy of unexpected type {type(layer).__name__}")
    return {}


def _compile(pattern: Any) -> Optional[Pattern]:
    if not isinstance(pattern, str) or not pattern:
        return None
    try:
        return re.compile(pattern, re.IGNORECASE | re.DOTALL)
    except re.error as e:
        logger.warning(f"Ignoring invalid image regex {pattern!r}: {e}")
        return None


def _image_strategy(layer: Dict[str, Any]) -> Optional[ImageStrategy]:
    raw_mode = layer.get('imageSource')
    pattern = _compile(layer.get('customImageRegex'))

    if raw_mode is None:
        # A bare regex implies the regex strategy
        return RegexImage(pattern) if pattern else None

    try:
        mode = ImageSource(str(raw_mode).strip().lower())
    except ValueError:
        logger.warning(f"Ignoring unknown image source mode {raw_mode!r}")
        return None

    if mode == ImageSource.CUSTOM_REGEX:
        return RegexImage(pattern) if pattern else None
    return _SIMPLE_IMAGE_STRATEGIES[mode]


def _description_source(layer: Dict[str, Any]) -> Optional[DescriptionSource]:
    raw_mode = layer.get('descriptionSource')
    if raw_mode is None:
        return None
    try:
        return DescriptionSource(str(raw_mode).strip().lower())
    except ValueError:
        logger.warning(f"Ignoring unknown description source {raw_mode!r}")
        return None


def _strip_html(layer: Dict[str, Any]) -> Optional[bool]:
    value = layer.get('stripHtml')
    return value if isinstance(value, bool) else None


def _max_length(layer: Dict[str, Any]) -> Optional[int]:
    value = layer.get('maxDescriptionLength')
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def _date_format(layer: Dict[str, Any]) -> Optional[str]:
    value = layer.get('customDateFormat')
    if not isinstance(value, str) or '%' not in value:
        return None
    return value


def _field_mappings(layer: Dict[str, Any]) -> Dict[str, str]:
    value = layer.get('fieldMappings')
    if not isinstance(value, Mapping):
        return {}
    return {
        k: v for k, v in value.items()
        if k in MAPPABLE_FIELDS and isinstance(v, str) and v
    }


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_policy(feed_override: PolicyLayer, global_defaults: PolicyLayer) -> ResolvedPolicy:
    """
    Merge a feed's extraction override with the global defaults.

    Each field is taken from the override when it holds a usable value,
    otherwise from the global defaults, otherwise the built-in auto mode.
    Never raises: malformed fields are treated as unset.

    Args:
        feed_override: Per-feed ExtractionPolicy (model or raw dict) or None
        global_defaults: Global ExtractionPolicy (model or raw dict) or None

    Returns:
        ResolvedPolicy for one feed for one run
    """
    override = _as_dict(feed_override)
    defaults = _as_dict(global_defaults)
    builtin = ResolvedPolicy()

    mappings = _field_mappings(defaults)
    mappings.update(_field_mappings(override))

    return ResolvedPolicy(
        image=_first(_image_strategy(override), _image_strategy(defaults), builtin.image),
        description_source=_first(
            _description_source(override), _description_source(defaults), builtin.description_source
        ),
        strip_html=_first(_strip_html(override), _strip_html(defaults), builtin.strip_html),
        max_description_length=_first(_max_length(override), _max_length(defaults)),
        date_format=_first(_date_format(override), _date_format(defaults)),
        field_mappings=MappingProxyType(mappings),
    )
