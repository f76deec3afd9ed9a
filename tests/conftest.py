"""Shared fixtures for rssok tests."""

from datetime import datetime, timedelta, timezone

import pytest

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 60
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 60
GIF_BYTES = b"GIF89a" + b"\x00" * 60
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 60

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
FIXED_NOW_RFC822 = "Fri, 01 Mar 2024 12:00:00 GMT"


class TickingClock:
    """Clock that advances one millisecond per call, starting at FIXED_NOW."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.current = start
        self.calls = 0

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(milliseconds=1)
        self.calls += 1
        return value


class FakeFetcher:
    """Fetcher serving canned responses; exceptions in the map are raised."""

    def __init__(self, responses):
        self.responses = responses
        self.requested = []

    async def fetch(self, url):
        self.requested.append(url)
        result = self.responses[url]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def content_dir(tmp_path):
    path = tmp_path / "images"
    path.mkdir()
    return path
