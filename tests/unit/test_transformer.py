"""Unit tests for the feed transformer."""

import asyncio
import logging
from datetime import datetime, timezone

import httpx
import pytest

from rssok.exceptions import HttpStatusError, ParseError, StorageError, TransportError
from rssok.services.fetcher import MediaFetcher
from rssok.services.transformer import (
    DEFAULT_CHANNEL_TITLE,
    ITEM_TITLE,
    FeedTransformer,
    epoch_millis,
    format_rfc822,
    parse_pub_date,
)
from rssok.storage.media_store import MediaStore

from ..conftest import (
    FIXED_NOW,
    FIXED_NOW_RFC822,
    JPEG_BYTES,
    PNG_BYTES,
    FakeFetcher,
)

pytestmark = pytest.mark.anyio

BASE_URL = "http://rss.example.org"


def rss(items: str, title: str = "<title>T</title>") -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>{title}<link>https://t.me/s/test</link>
<description>upstream description</description>
<pubDate>Sat, 01 Jan 2000 00:00:00 GMT</pubDate>
{items}
</channel></rss>"""


def item(n: int, image: str = "", extra: str = "") -> str:
    image_el = f"<image><url>{image}</url></image>" if image else ""
    return (
        f"<item><title>Post {n}</title><description>Caption {n}</description>"
        f"<link>https://t.me/test/{n}</link>{image_el}{extra}</item>"
    )


class FailingStore:
    async def store(self, data, logical_name):
        raise StorageError("disk full")


class TestChannelNormalization:
    """Tests for channel-level rewriting."""

    async def test_channel_fields(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform("durov", rss(""))
        channel = document.channel

        assert channel.title == "T"
        assert channel.link == "https://t.me/durov"
        assert channel.description == ""
        assert channel.pub_date == FIXED_NOW_RFC822
        assert channel.last_build_date == FIXED_NOW_RFC822
        assert channel.self_link == ""
        assert channel.items == []

    async def test_missing_title_uses_placeholder(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform("durov", rss("", title=""))

        assert document.channel.title == DEFAULT_CHANNEL_TITLE

    async def test_empty_title_uses_placeholder(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform("durov", rss("", title="<title></title>"))

        assert document.channel.title == DEFAULT_CHANNEL_TITLE

    async def test_malformed_markup_raises(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)

        with pytest.raises(ParseError):
            await transformer.transform("durov", "<rss><channel>")


class TestItemRewriting:
    """Tests for per-item rewriting."""

    async def test_successful_image_is_localized(self, content_dir, clock):
        fetcher = FakeFetcher({"https://cdn.example.com/1.jpg": PNG_BYTES})
        transformer = FeedTransformer(fetcher, MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform(
            "test", rss(item(1, image="https://cdn.example.com/1.jpg"))
        )
        result = document.channel.items[0]

        expected_name = f"{epoch_millis(FIXED_NOW) + 1}-0.png"
        assert result.title == ITEM_TITLE
        assert result.description == "Caption 1"
        assert result.link == "https://t.me/test/1"
        assert result.guid == "https://t.me/test/1"
        assert result.enclosure.url == f"{BASE_URL}/images/{expected_name}"
        assert result.enclosure.mime_type == "image/png"
        assert result.enclosure.length == str(len(PNG_BYTES))
        assert (content_dir / expected_name).read_bytes() == PNG_BYTES

    @pytest.mark.parametrize(
        "error",
        [
            HttpStatusError(404, "https://cdn.example.com/1.jpg"),
            TransportError("connection reset"),
        ],
    )
    async def test_fetch_failure_falls_back(self, content_dir, clock, error, caplog):
        fetcher = FakeFetcher({"https://cdn.example.com/1.jpg": error})
        transformer = FeedTransformer(fetcher, MediaStore(content_dir), BASE_URL, clock=clock)

        with caplog.at_level(logging.WARNING, logger="rssok"):
            document = await transformer.transform(
                "test", rss(item(1, image="https://cdn.example.com/1.jpg"))
            )
        result = document.channel.items[0]

        assert result.title == ITEM_TITLE
        assert result.enclosure.url == "https://cdn.example.com/1.jpg"
        assert result.enclosure.mime_type == "image/jpeg"
        assert result.enclosure.length == "0"
        assert "https://cdn.example.com/1.jpg" in caplog.text
        assert list(content_dir.iterdir()) == []

    async def test_storage_failure_falls_back(self, clock):
        fetcher = FakeFetcher({"https://cdn.example.com/1.png": PNG_BYTES})
        transformer = FeedTransformer(fetcher, FailingStore(), BASE_URL, clock=clock)

        document = await transformer.transform(
            "test", rss(item(1, image="https://cdn.example.com/1.png"))
        )
        enclosure = document.channel.items[0].enclosure

        assert enclosure.url == "https://cdn.example.com/1.png"
        assert enclosure.mime_type == "image/jpeg"
        assert enclosure.length == "0"

    async def test_item_without_image_has_no_enclosure(self, content_dir, clock):
        fetcher = FakeFetcher({})
        transformer = FeedTransformer(fetcher, MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform("test", rss(item(1)))
        result = document.channel.items[0]

        assert result.enclosure is None
        assert result.title == ITEM_TITLE
        assert fetcher.requested == []

    async def test_description_falls_back_to_title(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)
        markup = rss("<item><title>Only title</title><link>https://t.me/test/9</link></item>")

        document = await transformer.transform("test", markup)

        assert document.channel.items[0].description == "Only title"

    async def test_valid_pub_date_is_normalized(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)
        markup = rss(item(1, extra="<pubDate>2024-01-02T03:04:05+02:00</pubDate>"))

        document = await transformer.transform("test", markup)

        assert document.channel.items[0].pub_date == "Tue, 02 Jan 2024 01:04:05 GMT"

    @pytest.mark.parametrize("raw", ["", "not a date", "32/13/2024"])
    async def test_invalid_pub_date_uses_channel_timestamp(self, content_dir, clock, raw):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)
        markup = rss(item(1, extra=f"<pubDate>{raw}</pubDate>"))

        document = await transformer.transform("test", markup)

        assert document.channel.items[0].pub_date == FIXED_NOW_RFC822

    async def test_missing_pub_date_uses_channel_timestamp(self, content_dir, clock):
        transformer = FeedTransformer(FakeFetcher({}), MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform("test", rss(item(1)))

        assert document.channel.items[0].pub_date == FIXED_NOW_RFC822

    @pytest.mark.parametrize(
        "image_url",
        ["https://[::1/a.jpg", "http://cdn.example.com/a.jpg"],
    )
    async def test_unusable_image_url_falls_back(self, content_dir, clock, image_url):
        def handler(request):
            return httpx.Response(200, content=JPEG_BYTES)

        fetcher = MediaFetcher(transport=httpx.MockTransport(handler))
        transformer = FeedTransformer(fetcher, MediaStore(content_dir), BASE_URL, clock=clock)

        document = await transformer.transform("test", rss(item(1, image=image_url) + item(2)))
        first, second = document.channel.items

        assert first.enclosure.url == image_url
        assert first.enclosure.mime_type == "image/jpeg"
        assert first.enclosure.length == "0"
        assert second.enclosure is None
        assert list(content_dir.iterdir()) == []


class TestConcurrency:
    """Tests for concurrent per-item processing."""

    async def test_order_preserved_when_first_fetch_is_slowest(self, content_dir, clock):
        completed = []

        class DelayedFetcher:
            async def fetch(self, url):
                if url.endswith("/1.jpg"):
                    await asyncio.sleep(0.05)
                completed.append(url)
                return JPEG_BYTES

        transformer = FeedTransformer(DelayedFetcher(), MediaStore(content_dir), BASE_URL, clock=clock)
        markup = rss("".join(item(n, image=f"https://cdn.example.com/{n}.jpg") for n in range(1, 5)))

        document = await transformer.transform("test", markup)

        assert completed[-1] == "https://cdn.example.com/1.jpg"
        assert [i.link for i in document.channel.items] == [
            f"https://t.me/test/{n}" for n in range(1, 5)
        ]
        assert len({i.enclosure.url for i in document.channel.items}) == 4

    async def test_one_failure_does_not_affect_siblings(self, content_dir, clock):
        fetcher = FakeFetcher(
            {
                "https://cdn.example.com/1.jpg": JPEG_BYTES,
                "https://cdn.example.com/2.jpg": TransportError("boom"),
                "https://cdn.example.com/3.jpg": PNG_BYTES,
            }
        )
        transformer = FeedTransformer(fetcher, MediaStore(content_dir), BASE_URL, clock=clock)
        markup = rss(
            item(1, image="https://cdn.example.com/1.jpg")
            + item(2, image="https://cdn.example.com/2.jpg")
            + item(3, image="https://cdn.example.com/3.jpg")
        )

        document = await transformer.transform("test", markup)
        enclosures = [i.enclosure for i in document.channel.items]

        assert enclosures[0].url.startswith(f"{BASE_URL}/images/")
        assert enclosures[1].url == "https://cdn.example.com/2.jpg"
        assert enclosures[1].length == "0"
        assert enclosures[2].mime_type == "image/png"


    async def test_siblings_get_distinct_files_with_real_clock(self, content_dir):
        bodies = {f"https://cdn.example.com/{n}.png": PNG_BYTES + bytes([n]) for n in range(1, 6)}
        transformer = FeedTransformer(FakeFetcher(bodies), MediaStore(content_dir), BASE_URL)
        markup = rss("".join(item(n, image=f"https://cdn.example.com/{n}.png") for n in range(1, 6)))

        document = await transformer.transform("test", markup)
        urls = [i.enclosure.url for i in document.channel.items]

        assert len(set(urls)) == 5
        assert len(list(content_dir.iterdir())) == 5
        for n, url in enumerate(urls, start=1):
            filename = url.rsplit("/", 1)[-1]
            assert (content_dir / filename).read_bytes() == bodies[f"https://cdn.example.com/{n}.png"]


class TestDateHelpers:
    """Tests for timestamp helpers."""

    def test_format_rfc822(self):
        assert format_rfc822(FIXED_NOW) == FIXED_NOW_RFC822

    def test_format_naive_as_utc(self):
        assert format_rfc822(datetime(2024, 3, 1, 12, 0, 0)) == FIXED_NOW_RFC822

    def test_parse_rfc822(self):
        assert parse_pub_date("Fri, 01 Mar 2024 12:00:00 GMT") == FIXED_NOW

    def test_parse_iso_zulu(self):
        assert parse_pub_date("2024-03-01T12:00:00Z") == FIXED_NOW

    def test_parse_naive_iso_is_utc(self):
        assert parse_pub_date("2024-03-01T12:00:00").tzinfo == timezone.utc

    def test_parse_garbage(self):
        assert parse_pub_date("yesterday") is None
        assert parse_pub_date(None) is None

    def test_epoch_millis(self):
        assert epoch_millis(FIXED_NOW) == 1709294400000
