"""Data models for rssok.

This module defines the feed document tree built per request and the
descriptor returned by the media store.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Enclosure:
    """Media attached to a feed item."""

    url: str
    mime_type: str
    length: str


@dataclass
class Item:
    """A single post in the channel."""

    title: str
    description: str
    pub_date: str
    link: str
    enclosure: Optional[Enclosure] = None

    @property
    def guid(self) -> str:
        return self.link


@dataclass
class Channel:
    """Channel metadata plus its ordered items."""

    title: str
    link: str
    description: str = ""
    pub_date: str = ""
    last_build_date: str = ""
    self_link: str = ""
    items: List[Item] = field(default_factory=list)


@dataclass
class SourceItem:
    """Raw fields read from an upstream item before rewriting."""

    title: Optional[str]
    description: Optional[str]
    pub_date: Optional[str]
    link: Optional[str]
    image_url: Optional[str]


@dataclass
class SourceChannel:
    """Raw channel read from upstream markup."""

    title: Optional[str]
    items: List[SourceItem] = field(default_factory=list)


@dataclass
class FeedDocument:
    """Root of a feed; always holds exactly one channel."""

    channel: Channel


@dataclass
class MediaDescriptor:
    """Result of storing a downloaded image."""

    filename: str
    size: int
    mime_type: str
    extension: str
