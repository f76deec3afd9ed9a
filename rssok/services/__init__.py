"""Services for rssok."""

from .feed_markup import parse_channel, serialize_feed
from .feed_service import FeedService, RenderedFeed
from .fetcher import MediaFetcher
from .sniffer import detect_mime_type, extension_for
from .transformer import FeedTransformer
from .upstream import RssUrlFeedSource, TelegramFeedSource, create_feed_source

__all__ = [
    "parse_channel",
    "serialize_feed",
    "FeedService",
    "RenderedFeed",
    "MediaFetcher",
    "detect_mime_type",
    "extension_for",
    "FeedTransformer",
    "RssUrlFeedSource",
    "TelegramFeedSource",
    "create_feed_source",
]
