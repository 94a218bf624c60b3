from __future__ import annotations

from feedvault.utils.hash import generate_content_hash
from feedvault.utils.url_normalizer import normalize_url


def test_normalize_url_drops_tracking_fragment_and_trailing_slash():
    assert normalize_url("  https://Site.com/Article/?utm_source=rss&id=123#comments ") == "https://site.com/article?id=123"


def test_normalize_url_sorts_query_parameters():
    assert normalize_url("https://site.com/a?b=2&a=1") == normalize_url("https://site.com/a?a=1&b=2")


def test_normalize_url_empty():
    assert normalize_url("") == ""
    assert normalize_url("   ") == ""


def test_content_hash_is_stable_across_link_variants():
    variants = [
        "https://example.com/news/storm",
        "https://EXAMPLE.com/news/storm/",
        " https://example.com/news/storm?utm_campaign=feed ",
        "https://example.com/news/storm#top",
    ]
    hashes = {generate_content_hash(link) for link in variants}
    assert len(hashes) == 1
    assert len(hashes.pop()) == 64


def test_content_hash_differs_for_different_articles():
    assert generate_content_hash("https://example.com/a") != generate_content_hash("https://example.com/b")
