"""Data models for rssok."""

from .schemas import (
    Channel,
    Enclosure,
    FeedDocument,
    Item,
    MediaDescriptor,
    SourceChannel,
    SourceItem,
)

__all__ = [
    "Channel",
    "Enclosure",
    "FeedDocument",
    "Item",
    "MediaDescriptor",
    "SourceChannel",
    "SourceItem",
]
