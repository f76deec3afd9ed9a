"""Media fetcher service.

This module downloads remote images over HTTPS and returns the full body.
"""

from typing import Optional
from urllib.parse import urlsplit

import httpx

from rssok.config import DEFAULT_FETCH_TIMEOUT, DEFAULT_USER_AGENT
from rssok.exceptions import HttpStatusError, TransportError
from rssok.log_system.unified_logger import UnifiedLogger


class MediaFetcher:
    """Single-attempt image downloader.

    Each call is independent, so concurrent fetches for sibling items never
    affect one another.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    async def fetch(self, url: str) -> bytes:
        """Download a resource and return its complete body.

        Args:
            url: HTTPS URL of the image

        Returns:
            Response body bytes

        Raises:
            HttpStatusError: If the response status is not 2xx
            TransportError: On a non-HTTPS URL, connection failure or timeout
        """
        logger = UnifiedLogger.get_logger(__name__)

        try:
            scheme = urlsplit(url).scheme
        except ValueError as e:
            raise TransportError(f"Malformed image URL {url}: {e}") from e
        if scheme != "https":
            raise TransportError(f"Refusing non-HTTPS image URL: {url}")

        logger.debug(f"Fetching image: {url}")

        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(url)
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                raise TransportError(f"Failed to download image {url}: {e}") from e

        if not response.is_success:
            raise HttpStatusError(response.status_code, url)

        return response.content
