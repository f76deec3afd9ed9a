"""Exception handling decorator for MCP tools."""

import functools
from typing import Any, Awaitable, Callable, Dict

from rssok.exceptions import NotFound, ParseError, UpstreamFetchError
from rssok.log_system.unified_logger import UnifiedLogger

# Messages returned to MCP clients; internals stay in the server log.
ERROR_MESSAGES = {
    UpstreamFetchError: "Could not retrieve the upstream feed.",
    ParseError: "The upstream feed is not valid RSS.",
    NotFound: "Not found.",
}
GENERIC_ERROR = "Error generating RSS feed."


def exception_handler(func: Callable[..., Awaitable[Dict[str, Any]]]):
    """Convert exceptions raised by a tool into an error result.

    The traceback is logged; the client receives only a generic message.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger = UnifiedLogger.get_logger(func.__module__)
            logger.error(f"Tool {func.__name__} failed: {e}", exc_info=True)
            message = next(
                (msg for cls, msg in ERROR_MESSAGES.items() if isinstance(e, cls)),
                GENERIC_ERROR,
            )
            return {"success": False, "error": message}

    return wrapper
