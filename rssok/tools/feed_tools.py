"""Feed MCP tools.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings.
"""

from typing import Any, Callable, Dict, List

from mcp.server.fastmcp import Context

from rssok.log_system.unified_logger import UnifiedLogger
from rssok.services.feed_service import FeedService


def make_feed_tools(service: FeedService, default_channel: str) -> List[Callable]:
    """Build the feed tools bound to a FeedService.

    Args:
        service: Pipeline used to render feeds
        default_channel: Channel used when the caller passes an empty string

    Returns:
        List of tool coroutines for registration
    """

    async def get_channel_feed(channel: str = "", ctx: Context = None) -> Dict[str, Any]:
        """Render a Telegram channel as an RSS 2.0 feed with locally hosted images.

        Images referenced by each post are downloaded and served by this
        server; posts whose image cannot be downloaded keep the original
        image URL.

        Args:
            channel: Public channel username (empty string uses the server default)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - channel: the channel rendered
            - item_count: number of items in the feed
            - xml: the feed document
            - error: string if success is False
        """
        logger = UnifiedLogger.get_logger(__name__)
        channel = channel or default_channel
        logger.info(f"get_channel_feed called: channel={channel}")

        rendered = await service.render(channel)

        return {
            "success": True,
            "channel": channel,
            "item_count": len(rendered.document.channel.items),
            "xml": rendered.body.decode("utf-8"),
        }

    return [get_channel_feed]
