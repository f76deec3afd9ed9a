"""Server package initialization"""

from rssok.server.app import create_server

__all__ = ["create_server"]
