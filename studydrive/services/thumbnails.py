"""Thumbnail generation for uploaded images.

Generation is best-effort: any failure or timeout yields ``None`` and the
upload proceeds without a thumbnail.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ..core.config import settings

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (200, 200)
THUMBNAIL_QUALITY = 80

# Pillow decoders are CPU-bound; a small pool keeps a slow image from
# holding a request thread past the timeout.
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="thumbnail")


def supports(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.startswith("image/") and mime_type != "image/svg+xml"


def render_thumbnail(data: bytes) -> bytes:
    """Downscale image bytes to a JPEG no larger than THUMBNAIL_SIZE."""
    with Image.open(io.BytesIO(data)) as image:
        image = image.convert("RGB")
        image.thumbnail(THUMBNAIL_SIZE)
        out = io.BytesIO()
        image.save(out, format="JPEG", quality=THUMBNAIL_QUALITY)
        return out.getvalue()


def generate_thumbnail(data: bytes, mime_type: Optional[str], timeout: Optional[float] = None) -> Optional[bytes]:
    """Thumbnail bytes for *data*, or None if unsupported, failed, or too slow."""
    if not supports(mime_type):
        return None

    timeout = timeout if timeout is not None else settings.thumbnail_timeout_seconds
    future = _executor.submit(render_thumbnail, data)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.warning("Thumbnail generation timed out", extra={"mime_type": mime_type, "timeout": timeout})
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning("Thumbnail generation failed: %s", e, extra={"mime_type": mime_type})
    return None
