"""rssok - RSS proxy that re-hosts feed item images."""

__version__ = "1.0.0"
