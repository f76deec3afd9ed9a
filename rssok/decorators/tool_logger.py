"""Logging decorator for MCP tools."""

import functools
import time
from typing import Any, Dict, Optional

from rssok.log_system.correlation import (
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from rssok.log_system.unified_logger import UnifiedLogger


def tool_logger(func, config: Optional[Dict[str, Any]] = None):
    """Log each tool call with a fresh correlation id and its duration."""
    server_name = (config or {}).get("name", "rssok")

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = UnifiedLogger.get_logger(func.__module__)
        set_correlation_id(generate_correlation_id())
        started = time.perf_counter()
        logger.info(f"[{server_name}] tool {func.__name__} called with {kwargs}")
        try:
            result = await func(*args, **kwargs)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"[{server_name}] tool {func.__name__} finished in {elapsed_ms:.1f}ms")
            return result
        finally:
            clear_correlation_id()

    return wrapper
