"""Upstream feed sources.

A feed source turns a channel name into raw RSS markup. Two sources exist:
scraping the public Telegram web preview, and fetching a ready-made RSS feed
from a configured URL template.
"""

import re
from typing import Optional, Protocol, Union

import feedparser
import httpx
from bs4 import BeautifulSoup
from lxml import etree

from rssok.config import DEFAULT_FETCH_TIMEOUT, DEFAULT_USER_AGENT, ServerConfig
from rssok.exceptions import UpstreamFetchError
from rssok.log_system.unified_logger import UnifiedLogger
from rssok.services.transformer import format_rfc822, parse_pub_date

TELEGRAM_PREVIEW_URL = "https://t.me/s/{channel}"
TELEGRAM_POST_URL = "https://t.me/{post}"

_BACKGROUND_URL = re.compile(r"background-image:\s*url\(['\"]?(.*?)['\"]?\)")
# Characters XML 1.0 does not allow in text content
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


class FeedSource(Protocol):
    """Anything that can produce RSS markup for a channel."""

    async def fetch_feed(self, channel: str) -> Union[str, bytes]:
        ...


def _clean(text: str) -> str:
    return _INVALID_XML_CHARS.sub("", text)


def _background_image(style: str) -> Optional[str]:
    match = _BACKGROUND_URL.search(style or "")
    if not match:
        return None
    url = match.group(1).strip()
    if url.startswith("//"):
        url = "https:" + url
    return url or None


class TelegramFeedSource:
    """Builds RSS markup by scraping https://t.me/s/<channel>."""

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    async def fetch_feed(self, channel: str) -> str:
        """Scrape a channel's web preview and render it as RSS 2.0.

        Args:
            channel: Public channel username

        Returns:
            RSS markup

        Raises:
            UpstreamFetchError: If the preview page cannot be fetched or is
                not a channel page
        """
        logger = UnifiedLogger.get_logger(__name__)
        url = TELEGRAM_PREVIEW_URL.format(channel=channel)
        logger.info(f"Scraping Telegram channel: {url}")

        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise UpstreamFetchError(f"Failed to fetch channel {channel}: {e}") from e

        return self.render(channel, response.text)

    def render(self, channel: str, html: str) -> str:
        """Convert a channel preview page into RSS markup."""
        logger = UnifiedLogger.get_logger(__name__)
        soup = BeautifulSoup(html, "lxml")

        messages = soup.select(".tgme_widget_message[data-post]")
        title_el = soup.select_one(".tgme_channel_info_header_title")
        if title_el is None and not messages:
            raise UpstreamFetchError(f"No public channel preview for {channel}")

        rss = etree.Element("rss", version="2.0")
        channel_el = etree.SubElement(rss, "channel")
        etree.SubElement(channel_el, "title").text = _clean(
            title_el.get_text(strip=True) if title_el is not None else channel
        )
        etree.SubElement(channel_el, "link").text = TELEGRAM_PREVIEW_URL.format(channel=channel)
        description_el = soup.select_one(".tgme_channel_info_description")
        etree.SubElement(channel_el, "description").text = _clean(
            description_el.get_text(" ", strip=True) if description_el is not None else ""
        )

        # The preview lists oldest first; feeds list newest first.
        for message in reversed(messages):
            item_el = etree.SubElement(channel_el, "item")
            text_el = message.select_one(".tgme_widget_message_text")
            text = _clean(text_el.get_text("\n", strip=True)) if text_el is not None else ""
            etree.SubElement(item_el, "title").text = text.split("\n", 1)[0][:100]
            if text:
                etree.SubElement(item_el, "description").text = text
            etree.SubElement(item_el, "link").text = TELEGRAM_POST_URL.format(
                post=message["data-post"]
            )

            time_el = message.select_one("time[datetime]")
            published = parse_pub_date(time_el["datetime"]) if time_el is not None else None
            if published:
                etree.SubElement(item_el, "pubDate").text = format_rfc822(published)

            photo = message.select_one(".tgme_widget_message_photo_wrap[style]")
            image_url = _background_image(photo["style"]) if photo is not None else None
            if image_url:
                image_el = etree.SubElement(item_el, "image")
                etree.SubElement(image_el, "url").text = image_url

        logger.info(f"Scraped {len(messages)} posts from {channel}")
        return etree.tostring(rss, encoding="unicode")


class RssUrlFeedSource:
    """Fetches ready-made RSS from a URL template containing ``{channel}``."""

    def __init__(
        self,
        url_template: str,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if "{channel}" not in url_template:
            raise ValueError(f"Upstream URL template must contain {{channel}}: {url_template}")
        self.url_template = url_template
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    async def fetch_feed(self, channel: str) -> bytes:
        """Fetch and validate the upstream feed for a channel.

        Raises:
            UpstreamFetchError: If the request fails or the body is not a feed
        """
        logger = UnifiedLogger.get_logger(__name__)
        url = self.url_template.format(channel=channel)
        logger.info(f"Fetching upstream feed: {url}")

        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise UpstreamFetchError(f"Failed to fetch feed {url}: {e}") from e

        feed = feedparser.parse(response.content)
        if feed.bozo and not feed.entries:
            raise UpstreamFetchError(f"Upstream did not return a feed: {feed.get('bozo_exception')}")

        return response.content


def create_feed_source(config: ServerConfig) -> FeedSource:
    """Pick the feed source for a configuration."""
    if config.upstream_url_template:
        return RssUrlFeedSource(
            config.upstream_url_template,
            timeout=config.fetch_timeout,
            user_agent=config.user_agent,
        )
    return TelegramFeedSource(timeout=config.fetch_timeout, user_agent=config.user_agent)
