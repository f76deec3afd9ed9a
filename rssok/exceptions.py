"""Error taxonomy for rssok.

Fatal errors (ParseError, UpstreamFetchError) abort a feed request. Media
errors (MediaFetchError subclasses, StorageError) are recovered per item.
"""

from typing import Optional


class RssOkError(Exception):
    """Base class for all rssok errors."""


class ParseError(RssOkError):
    """Upstream feed markup is not a well-formed RSS document."""


class UpstreamFetchError(RssOkError):
    """The upstream feed could not be retrieved for a channel."""


class MediaFetchError(RssOkError):
    """Base error for image download failures."""


class HttpStatusError(MediaFetchError):
    """The image host answered with a non-success status."""

    def __init__(self, status_code: int, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Failed to download image: {status_code}")


class TransportError(MediaFetchError):
    """Connection-level failure before or during the response."""


class StorageError(RssOkError):
    """The image could not be written to the content directory."""


class NotFound(RssOkError):
    """A stored image does not exist or cannot be read."""
