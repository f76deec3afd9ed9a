"""Unified logger for rssok.

All modules obtain loggers through ``UnifiedLogger.get_logger(__name__)`` so
that every record carries the current correlation id and goes to the
handler installed on the ``rssok`` root logger.
"""

import logging
import sys
from typing import Optional, TextIO

from rssok.log_system.correlation import get_correlation_id

ROOT_LOGGER_NAME = "rssok"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Attach the active correlation id to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


class UnifiedLogger:
    """Process-wide logging setup."""

    _handler: Optional[logging.Handler] = None

    @classmethod
    def initialize_default(cls, config, stream: Optional[TextIO] = None) -> None:
        """Install a stream handler on the rssok logger.

        Calling this again replaces the previous handler, so repeated server
        construction (as in tests) does not duplicate output.

        Args:
            config: ServerConfig providing log_level
            stream: Output stream (stderr by default, keeping stdout free for
                the STDIO transport)
        """
        root = logging.getLogger(ROOT_LOGGER_NAME)
        if cls._handler is not None:
            root.removeHandler(cls._handler)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())

        root.addHandler(handler)
        root.setLevel(getattr(logging, str(config.log_level).upper(), logging.INFO))
        cls._handler = handler

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return a logger nested under the rssok logger."""
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @classmethod
    def close(cls) -> None:
        """Detach and flush the installed handler."""
        if cls._handler is None:
            return
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.removeHandler(cls._handler)
        cls._handler.flush()
        cls._handler = None
