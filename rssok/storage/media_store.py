"""Media storage for rssok.

Downloaded images are written to a flat content directory, named from a
logical name plus the extension of their sniffed format.
"""

import asyncio
from pathlib import Path

from rssok.exceptions import NotFound, StorageError
from rssok.log_system.unified_logger import UnifiedLogger
from rssok.models.schemas import MediaDescriptor
from rssok.services.sniffer import detect_mime_type, extension_for


class MediaStore:
    """Append-only image store rooted at a content directory."""

    def __init__(self, content_dir: Path):
        self.content_dir = Path(content_dir)

    def ensure_directory(self) -> None:
        """Create the content directory if it does not exist."""
        self.content_dir.mkdir(parents=True, exist_ok=True)

    async def store(self, data: bytes, logical_name: str) -> MediaDescriptor:
        """Write an image under its logical name with the sniffed extension.

        An existing extension on ``logical_name`` is replaced. A file with the
        same final name is overwritten.

        Args:
            data: Image bytes
            logical_name: Base name, e.g. a fetch timestamp

        Returns:
            MediaDescriptor for the written file

        Raises:
            StorageError: If the file cannot be written
        """
        logger = UnifiedLogger.get_logger(__name__)

        mime_type = detect_mime_type(data)
        extension = extension_for(mime_type)
        filename = Path(logical_name).stem + extension
        path = self.content_dir / filename

        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes as {filename} ({mime_type})")

        return MediaDescriptor(
            filename=filename,
            size=len(data),
            mime_type=mime_type,
            extension=extension,
        )

    async def read(self, filename: str) -> bytes:
        """Read a stored image.

        Args:
            filename: Name relative to the content directory

        Returns:
            File contents

        Raises:
            NotFound: If the file is missing, unreadable, or outside the
                content directory
        """
        root = self.content_dir.resolve()
        path = (root / filename).resolve()

        if path.parent != root:
            raise NotFound(filename)

        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise NotFound(filename) from e
