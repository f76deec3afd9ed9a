"""Feed transformer.

Rewrites an upstream channel into the served feed: normalizes channel
metadata and, for every item concurrently, replaces the image reference
with a locally hosted copy, degrading to the original URL on failure.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import TYPE_CHECKING, Callable, Optional

from rssok.exceptions import MediaFetchError, StorageError
from rssok.log_system.unified_logger import UnifiedLogger
from rssok.models.schemas import (
    Channel,
    Enclosure,
    FeedDocument,
    Item,
    SourceItem,
)
from rssok.services.feed_markup import parse_channel

if TYPE_CHECKING:
    from rssok.services.fetcher import MediaFetcher
    from rssok.storage.media_store import MediaStore

DEFAULT_CHANNEL_TITLE = "Telegram Channel"
ITEM_TITLE = "[Photo]"
CHANNEL_LINK_TEMPLATE = "https://t.me/{channel}"
MEDIA_PREFIX = "/images/"
FALLBACK_MIME_TYPE = "image/jpeg"
FALLBACK_LENGTH = "0"

Clock = Callable[[], datetime]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def format_rfc822(moment: datetime) -> str:
    """Format a datetime as an RFC 822 GMT date, e.g. for pubDate."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an upstream publication date.

    Accepts RFC 822 (common in RSS) and ISO 8601. Naive values are UTC.

    Args:
        value: Raw date string or None

    Returns:
        datetime if parsed successfully, None otherwise
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = parsedate_to_datetime(value)
    except (ValueError, TypeError, IndexError):
        pass

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class MediaOutcome:
    """Result of localizing one item's image: stored or fallen back."""

    enclosure: Enclosure
    stored: bool
    error: Optional[Exception] = None


class FeedTransformer:
    """Turns upstream markup into the served FeedDocument."""

    def __init__(
        self,
        fetcher: "MediaFetcher",
        store: "MediaStore",
        base_url: str,
        clock: Clock = utc_now,
    ):
        self.fetcher = fetcher
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.clock = clock

    def media_url(self, filename: str) -> str:
        return f"{self.base_url}{MEDIA_PREFIX}{filename}"

    async def transform(self, channel_id: str, source_markup) -> FeedDocument:
        """Build the served feed for a channel.

        Per-item media failures never fail the transform; only malformed
        markup does.

        Args:
            channel_id: Channel name, used for the channel link
            source_markup: Upstream RSS markup

        Returns:
            FeedDocument with items in upstream order

        Raises:
            ParseError: If the markup is not a well-formed feed
        """
        logger = UnifiedLogger.get_logger(__name__)

        source = parse_channel(source_markup)
        now = format_rfc822(self.clock())

        channel = Channel(
            title=source.title or DEFAULT_CHANNEL_TITLE,
            link=CHANNEL_LINK_TEMPLATE.format(channel=channel_id),
            description="",
            pub_date=now,
            last_build_date=now,
            self_link="",
        )

        # gather preserves argument order, so each item keeps its slot.
        channel.items = list(
            await asyncio.gather(
                *(self._transform_item(index, item, now) for index, item in enumerate(source.items))
            )
        )

        logger.info(f"Transformed channel {channel_id} with {len(channel.items)} items")
        return FeedDocument(channel=channel)

    async def _transform_item(self, index: int, source: SourceItem, fallback_date: str) -> Item:
        parsed_date = parse_pub_date(source.pub_date)
        pub_date = format_rfc822(parsed_date) if parsed_date else fallback_date

        if source.description is not None:
            description = source.description
        else:
            description = source.title or ""

        enclosure = None
        if source.image_url:
            outcome = await self.localize_media(source.image_url, index)
            enclosure = outcome.enclosure

        return Item(
            title=ITEM_TITLE,
            description=description,
            pub_date=pub_date,
            link=(source.link or "").strip(),
            enclosure=enclosure,
        )

    async def localize_media(self, image_url: str, index: int = 0) -> MediaOutcome:
        """Download and store one image, falling back to the remote URL.

        The stored name is the fetch-time epoch milliseconds plus the item's
        position, so sibling items finishing in the same millisecond never
        share a file.

        Args:
            image_url: Original image URL
            index: Position of the item in the channel

        Returns:
            MediaOutcome whose enclosure points at the local copy, or at the
            original URL with type image/jpeg and length "0" on failure
        """
        logger = UnifiedLogger.get_logger(__name__)

        try:
            data = await self.fetcher.fetch(image_url)
            logical_name = f"{epoch_millis(self.clock())}-{index}.tmp"
            descriptor = await self.store.store(data, logical_name)
        except (MediaFetchError, StorageError) as e:
            logger.warning(f"Error downloading image {image_url}, keeping remote URL: {e}")
            return MediaOutcome(
                enclosure=Enclosure(
                    url=image_url,
                    mime_type=FALLBACK_MIME_TYPE,
                    length=FALLBACK_LENGTH,
                ),
                stored=False,
                error=e,
            )

        return MediaOutcome(
            enclosure=Enclosure(
                url=self.media_url(descriptor.filename),
                mime_type=descriptor.mime_type,
                length=str(descriptor.size),
            ),
            stored=True,
        )
