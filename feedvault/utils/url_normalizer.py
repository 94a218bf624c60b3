"""Link normalization for deduplication"""
from urllib.parse import urlparse, parse_qsl, urlencode, urlunparse


# Common tracking parameters to remove
TRACKING_PARAMS = {
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_content', 'utm_term',
    'fbclid', 'gclid', 'msclkid',  # Social/ad tracking
    '_ga', '_gl',                   # Google Analytics
}


def normalize_url(url: str) -> str:
    """
    Normalize an article link so the same article always yields the same key.

    Trims surrounding whitespace, lowercases, drops the fragment and tracking
    parameters, sorts the remaining query parameters and removes trailing
    slashes from the path.

    Args:
        url: Raw link from the feed entry

    Returns:
        Normalized link, or "" when the input is empty

    Examples:
        >>> normalize_url("  https://Site.com/Article/?utm_source=rss&id=123 ")
        'https://site.com/article?id=123'

        >>> normalize_url("https://site.com/")
        'https://site.com'
    """
    if not url:
        return ""

    url = url.strip().lower()
    if not url:
        return ""

    try:
        parsed = urlparse(url)

        query_params = parse_qsl(parsed.query, keep_blank_values=False)
        clean_params = [(k, v) for k, v in query_params if k not in TRACKING_PARAMS]
        clean_query = urlencode(sorted(clean_params), doseq=True)

        return urlunparse((
            parsed.scheme,
            parsed.netloc,
            parsed.path.rstrip('/'),
            parsed.params,
            clean_query,
            ''  # Remove fragment (e.g., #section)
        ))

    except ValueError:
        # Unparseable (e.g. bad port); the trimmed lowercase form is still stable
        return url.rstrip('/')
