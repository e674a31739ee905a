"""Image encoding for uploads and filenames for downloads."""
import base64
import binascii
import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from portrait_studio.core.errors import ImageReadError

logger = logging.getLogger(__name__)


class DownloadKind(str, Enum):
    """Where a downloadable image comes from."""

    candidate = "candidate"
    edit = "edit"


def encode_image(raw: Optional[bytes], filename: str) -> str:
    """Encode uploaded file bytes as a base64 string (no data-URL prefix).

    Raises:
        ImageReadError: The file is empty or could not be read.
    """
    if not raw:
        logger.warning("Empty upload: %s", filename)
        raise ImageReadError(filename)
    return base64.b64encode(raw).decode("ascii")


def decode_image(data: str) -> bytes:
    """Decode a stored base64 image back to bytes for download."""
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Stored image is not valid base64") from exc


def download_filename(kind: DownloadKind, index: int, now: Optional[datetime] = None) -> str:
    """Suggested filename for a downloaded image.

    File name format: realid-gen-{timestamp_ms}-{index}.png for candidates,
    realid-edit-{timestamp_ms}.png for edit results.
    """
    moment = now or datetime.now()
    timestamp = int(moment.timestamp() * 1000)
    if kind == DownloadKind.candidate:
        return f"realid-gen-{timestamp}-{index}.png"
    return f"realid-edit-{timestamp}.png"
