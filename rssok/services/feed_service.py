"""Feed request pipeline: upstream fetch, transform, serialize."""

from dataclasses import dataclass

from rssok.log_system.unified_logger import UnifiedLogger
from rssok.models.schemas import FeedDocument
from rssok.services.feed_markup import serialize_feed
from rssok.services.transformer import FeedTransformer
from rssok.services.upstream import FeedSource


@dataclass
class RenderedFeed:
    """Serialized feed plus the document it was built from."""

    document: FeedDocument
    body: bytes


class FeedService:
    """Produces the served feed for a channel."""

    def __init__(self, source: FeedSource, transformer: FeedTransformer):
        self.source = source
        self.transformer = transformer

    async def render(self, channel_id: str) -> RenderedFeed:
        """Fetch, transform and serialize a channel's feed.

        Args:
            channel_id: Channel name

        Returns:
            RenderedFeed

        Raises:
            UpstreamFetchError: If the upstream feed cannot be retrieved
            ParseError: If the upstream markup is malformed
        """
        logger = UnifiedLogger.get_logger(__name__)
        logger.info(f"Rendering feed for channel: {channel_id}")

        markup = await self.source.fetch_feed(channel_id)
        document = await self.transformer.transform(channel_id, markup)
        return RenderedFeed(document=document, body=serialize_feed(document))
