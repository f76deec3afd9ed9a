"""Storage layer for rssok."""

from .media_store import MediaStore

__all__ = ["MediaStore"]
