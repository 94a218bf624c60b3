from __future__ import annotations

import pytest
from pydantic import ValidationError

from feedvault.extractors.policy import (
    AutoImage,
    MediaThumbnailImage,
    NoImage,
    RegexImage,
    resolve_policy,
)
from feedvault.models.source import DescriptionSource, ExtractionPolicy, FeedSource


def test_no_layers_resolves_to_builtin_auto():
    policy = resolve_policy(None, None)
    assert isinstance(policy.image, AutoImage)
    assert policy.description_source == DescriptionSource.AUTO
    assert policy.strip_html is True
    assert policy.max_description_length is None


def test_override_wins_field_by_field():
    defaults = ExtractionPolicy(imageSource="none", maxDescriptionLength=500, stripHtml=True)
    override = ExtractionPolicy(imageSource="media_thumbnail")

    policy = resolve_policy(override, defaults)

    assert isinstance(policy.image, MediaThumbnailImage)
    # Unset override fields fall through to the global layer
    assert policy.max_description_length == 500
    assert policy.strip_html is True


def test_global_defaults_apply_when_no_override():
    policy = resolve_policy(None, ExtractionPolicy(imageSource="none", descriptionSource="summary"))
    assert isinstance(policy.image, NoImage)
    assert policy.description_source == DescriptionSource.SUMMARY


def test_custom_regex_mode_compiles_pattern():
    policy = resolve_policy({"imageSource": "custom_regex", "customImageRegex": r'data-src="([^"]+)"'}, None)
    assert isinstance(policy.image, RegexImage)
    assert policy.image.pattern.groups == 1


def test_bare_regex_implies_regex_strategy():
    policy = resolve_policy({"customImageRegex": r'poster="([^"]+)"'}, None)
    assert isinstance(policy.image, RegexImage)


def test_malformed_fields_are_treated_as_unset():
    override = {
        "imageSource": "hologram",
        "customImageRegex": "([unclosed",
        "descriptionSource": 42,
        "stripHtml": "yes",
        "maxDescriptionLength": -3,
        "customDateFormat": "no directives",
        "fieldMappings": ["author"],
    }
    defaults = {"imageSource": "media_thumbnail", "maxDescriptionLength": 200}

    policy = resolve_policy(override, defaults)

    assert isinstance(policy.image, MediaThumbnailImage)
    assert policy.description_source == DescriptionSource.AUTO
    assert policy.strip_html is True
    assert policy.max_description_length == 200
    assert policy.date_format is None
    assert dict(policy.field_mappings) == {}


def test_custom_regex_mode_without_pattern_falls_through():
    policy = resolve_policy({"imageSource": "custom_regex"}, {"imageSource": "none"})
    assert isinstance(policy.image, NoImage)


def test_field_mappings_merge_per_key():
    policy = resolve_policy(
        {"fieldMappings": {"author": "dc_creator", "bogus": "x"}},
        {"fieldMappings": {"author": "byline", "image": "media_url"}},
    )
    assert dict(policy.field_mappings) == {"author": "dc_creator", "image": "media_url"}


def test_feed_source_drops_malformed_policy_fields():
    source = FeedSource(
        feedId="tolerant",
        name="Tolerant",
        url="https://tolerant.example.com/rss",
        extractionPolicy={"imageSource": "enclosure", "maxDescriptionLength": "lots"},
    )
    assert source.extractionPolicy is not None
    assert source.extractionPolicy.imageSource == "enclosure"
    assert source.extractionPolicy.maxDescriptionLength is None


@pytest.mark.parametrize("feed_id", ["news!", "a#b", "with space", ""])
def test_feed_id_rejects_characters_below_sort_key_separator(feed_id):
    with pytest.raises(ValidationError):
        FeedSource(feedId=feed_id, name="Bad", url="https://bad.example.com/rss")


def test_feed_id_accepts_slug_characters():
    assert FeedSource(feedId="bbc-world_2.uk", name="BBC", url="https://bbc.example.com/rss").feedId == "bbc-world_2.uk"
