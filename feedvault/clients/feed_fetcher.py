"""HTTP client for retrieving feed documents"""
import httpx
from dataclasses import dataclass
from typing import Optional
import logging

from feedvault.config import settings
from feedvault.exceptions import FetchError

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/rdf+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.8"


@dataclass
class FetchOutcome:
    """Feed bytes or the typed error explaining why there are none"""
    content: Optional[bytes] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FeedFetcher:
    """Fetch feed documents over HTTP. Ordinary network failures are returned, never raised."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, user_agent: Optional[str] = None):
        """
        Initialize feed fetcher.

        Args:
            client: Shared AsyncClient; one is created (and owned) when omitted
            user_agent: User-Agent header, defaults to settings.user_agent
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={
                'User-Agent': user_agent or settings.user_agent,
                'Accept': FEED_ACCEPT,
            }
        )

    async def fetch(self, url: str, timeout: float) -> FetchOutcome:
        """
        Retrieve a feed document.

        Args:
            url: Feed URL
            timeout: Seconds allowed for the whole request

        Returns:
            FetchOutcome with content, or with a FetchError on network failure,
            timeout or a non-success HTTP status
        """
        try:
            response = await self.client.get(url, timeout=timeout)
            response.raise_for_status()
            logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
            return FetchOutcome(content=response.content)

        except httpx.TimeoutException:
            return FetchOutcome(error=FetchError(url, f"Timed out after {timeout}s"))

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            return FetchOutcome(error=FetchError(url, f"HTTP {status}", status_code=status))

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return FetchOutcome(error=FetchError(url, f"{type(e).__name__}: {e}"))

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
