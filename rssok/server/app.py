"""rssok - RSS proxy server

This module builds the server: HTTP routes for the feed and harvested
images, the MCP tool surface, and the click entry point with multi-transport
support (STDIO, SSE, and Streamable HTTP).
"""

import asyncio
import os
import sys
from typing import Optional

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from rssok.config import ServerConfig, get_config
from rssok.decorators.exception_handler import exception_handler
from rssok.decorators.tool_logger import tool_logger
from rssok.exceptions import NotFound
from rssok.log_system.correlation import (
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from rssok.log_system.unified_logger import UnifiedLogger
from rssok.services.feed_service import FeedService
from rssok.services.fetcher import MediaFetcher
from rssok.services.sniffer import detect_mime_type
from rssok.services.transformer import Clock, FeedTransformer, utc_now
from rssok.services.upstream import FeedSource, create_feed_source
from rssok.storage.media_store import MediaStore
from rssok.tools.feed_tools import make_feed_tools

FEED_MIME_TYPE = "application/xml"
FEED_ERROR_TEXT = "Error generating RSS feed."
IMAGE_NOT_FOUND_TEXT = "Image not found"


def create_server(
    config: Optional[ServerConfig] = None,
    feed_source: Optional[FeedSource] = None,
    fetcher: Optional[MediaFetcher] = None,
    clock: Clock = utc_now,
) -> FastMCP:
    """Create and configure the rssok server.

    Args:
        config: Optional server configuration
        feed_source: Upstream feed source (chosen from config if omitted)
        fetcher: Image fetcher (built from config if omitted)
        clock: Source of the current time for feed timestamps and filenames

    Returns:
        Configured FastMCP server instance with HTTP routes registered
    """
    if config is None:
        config = get_config()

    UnifiedLogger.initialize_default(config)
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    store = MediaStore(config.image_dir)
    store.ensure_directory()
    logger.info(f"Serving images from {store.content_dir} as {config.public_base_url}/images/")

    if feed_source is None:
        feed_source = create_feed_source(config)
    if fetcher is None:
        fetcher = MediaFetcher(timeout=config.fetch_timeout, user_agent=config.user_agent)

    transformer = FeedTransformer(fetcher, store, config.public_base_url, clock=clock)
    service = FeedService(feed_source, transformer)

    # Configure DNS rebinding protection for the MCP endpoint (disabled by default)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()]

    mcp_server = FastMCP(
        config.name or "rssok",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts,
        ),
    )

    register_routes(mcp_server, config, store, service)
    register_tools(mcp_server, config, service)

    logger.info("Server initialization complete")
    return mcp_server


def register_routes(
    mcp_server: FastMCP,
    config: ServerConfig,
    store: MediaStore,
    service: FeedService,
) -> None:
    """Register the image and feed HTTP routes.

    Image requests are served straight from the content directory; every
    other path renders the feed for the ``channel`` query parameter.
    """

    async def serve_image(request: Request) -> Response:
        filename = request.path_params["filename"]
        try:
            data = await store.read(filename)
        except NotFound:
            return PlainTextResponse(IMAGE_NOT_FOUND_TEXT, status_code=404)
        return Response(data, media_type=detect_mime_type(data))

    async def serve_feed(request: Request) -> Response:
        logger = UnifiedLogger.get_logger(__name__)
        set_correlation_id(generate_correlation_id())
        channel = request.query_params.get("channel") or config.default_channel

        try:
            rendered = await service.render(channel)
        except Exception as e:
            logger.error(f"Error processing RSS for channel {channel}: {e}", exc_info=True)
            return PlainTextResponse(FEED_ERROR_TEXT, status_code=500)
        finally:
            clear_correlation_id()

        return Response(
            rendered.body,
            media_type=FEED_MIME_TYPE,
            headers={"Access-Control-Allow-Origin": "*"},
        )

    mcp_server.custom_route("/images/{filename:path}", methods=["GET"])(serve_image)
    mcp_server.custom_route("/", methods=["GET"])(serve_feed)
    mcp_server.custom_route("/{path:path}", methods=["GET"])(serve_feed)


def register_tools(mcp_server: FastMCP, config: ServerConfig, service: FeedService) -> None:
    """Register MCP tools with the server using decorators."""
    logger = UnifiedLogger.get_logger(__name__)

    for tool_func in make_feed_tools(service, config.default_channel):
        # Apply decorator chain: exception_handler → tool_logger
        decorated_func = exception_handler(tool_logger(tool_func, config.__dict__))
        tool_name = tool_func.__name__
        mcp_server.tool(name=tool_name)(decorated_func)
        logger.info(f"Registered feed tool: {tool_name}")


@click.command()
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to listen on (defaults to the PORT environment variable, then 80)",
)
@click.option(
    "--host",
    default=None,
    help="Host to bind to (defaults to RSSOK_HOST, then 0.0.0.0)",
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="streamable-http",
    help="Transport type (stdio, sse, or streamable-http)",
)
def main(port: Optional[int], host: Optional[str], transport: str) -> int:
    """Run the rssok server with the specified transport."""
    config = get_config()
    if port is not None:
        config.port = port
    if host is not None:
        config.host = host

    server = create_server(config)
    logger = UnifiedLogger.get_logger(__name__)

    async def run_server():
        """Inner async function to run the server and manage the event loop."""
        try:
            if transport == "stdio":
                logger.info("Starting server with STDIO transport")
                await server.run_stdio_async()
            elif transport == "sse":
                logger.info(f"Starting server with SSE transport on {config.host}:{config.port}")
                server.settings.host = config.host
                server.settings.port = config.port
                await server.run_sse_async()
            else:
                logger.info(f"Server running at {config.host}:{config.port}")
                server.settings.host = config.host
                server.settings.port = config.port
                server.settings.streamable_http_path = "/mcp"
                await server.run_streamable_http_async()
        finally:
            UnifiedLogger.close()

    try:
        asyncio.run(run_server())
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
