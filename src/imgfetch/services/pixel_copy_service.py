import asyncio
import base64
import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image

from chatdom.dom.core import ElementNode
from imgfetch.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)


def fits_cap(data_uri: str, max_bytes: int) -> bool:
    """Decoded size estimate of a base64 data URI (3 bytes per 4 characters)."""
    return len(data_uri) * 0.75 <= max_bytes


class PixelCopyService:
    """
    Copies the intrinsic pixels of an <img> whose decoded data is locally
    available (the snapshot's resource directory) and re-encodes them as a
    PNG data URI.
    """

    def __init__(self, resources_dir: Optional[Path], max_bytes: int, timeout_s: float = 20.0):
        self.resources_dir = resources_dir
        self.max_bytes = max_bytes
        self.timeout = float(timeout_s)

    def _encode(self, path: Path) -> str:
        with Image.open(path) as img:
            img.load()
            if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
        return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")

    async def copy(self, el: Optional[ElementNode], src: str) -> Optional[str]:
        """
        Returns a capped PNG data URI, or None when the pixels are not
        accessible, cannot be decoded in time, or the result exceeds the byte cap.
        """
        if el is None or el.tag != "img":
            return None

        path = UrlUtils.local_resource_path(self.resources_dir, src)
        if path is None:
            return None

        try:
            data_uri = await asyncio.wait_for(asyncio.to_thread(self._encode, path), self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Pixel copy of %s timed out after %.1fs.", path, self.timeout)
            return None
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.debug("Pixel copy failed for %s: %s", path, e)
            return None

        if not fits_cap(data_uri, self.max_bytes):
            logger.debug("Pixel copy of %s exceeds the %d byte cap.", path, self.max_bytes)
            return None
        return data_uri
