"""Image format sniffing.

Identifies an image by its leading magic bytes, ignoring any claimed
extension or content type.
"""

from typing import Dict, List, Tuple

DEFAULT_MIME_TYPE = "image/jpeg"
DEFAULT_EXTENSION = ".jpg"

# Checked in order; first match wins.
SIGNATURES: List[Tuple[str, bytes]] = [
    ("image/jpeg", b"\xff\xd8\xff"),
    ("image/png", b"\x89PNG"),
    ("image/gif", b"GIF8"),
    ("image/webp", b"RIFF"),
]

EXTENSIONS: Dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def detect_mime_type(data: bytes) -> str:
    """Classify a buffer into one of the known image MIME types.

    Buffers shorter than a signature never match it. Anything unrecognized
    is reported as JPEG.

    Args:
        data: Raw bytes, possibly empty

    Returns:
        MIME type string
    """
    for mime_type, signature in SIGNATURES:
        if data.startswith(signature):
            return mime_type
    return DEFAULT_MIME_TYPE


def extension_for(mime_type: str) -> str:
    """Map a MIME type to its file extension, defaulting to .jpg."""
    return EXTENSIONS.get(mime_type, DEFAULT_EXTENSION)
