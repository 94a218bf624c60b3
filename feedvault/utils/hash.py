"""SHA-256 hashing utilities for content deduplication"""
import hashlib

from feedvault.utils.url_normalizer import normalize_url


def generate_content_hash(link: str) -> str:
    """
    Generate the content hash identifying an article within its feed.

    Only the link takes part: a republished item with an edited description
    is still the same article.

    Args:
        link: Article link as found in the feed

    Returns:
        Hexadecimal SHA-256 hash string
    """
    hash_object = hashlib.sha256(normalize_url(link).encode('utf-8'))
    return hash_object.hexdigest()
