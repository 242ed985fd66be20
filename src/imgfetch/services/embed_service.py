import html
import logging
import re
from typing import Dict, List, Optional, Tuple

from chatdom.dom.models import ImageRef
from chatdom.model import ExportSettings
from imgfetch.services.http_image_service import HttpImageService
from imgfetch.services.pixel_copy_service import PixelCopyService
from imgfetch.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)

MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]*)\)")


class EmbedService:
    """
    Replaces image references with embedded data.

    Every distinct (alt, src) pair is resolved once, one at a time in discovery
    order: data URIs pass through, then the pixel copy, then (when allowed) an
    HTTP fetch. Anything that fails keeps its original reference. The fragment
    is serialized in a single substitution pass afterwards.
    """

    def __init__(
            self,
            settings: ExportSettings,
            pixel_copy: Optional[PixelCopyService] = None,
            http: Optional[HttpImageService] = None,
    ):
        self.settings = settings
        self.pixel_copy = pixel_copy
        self.http = http

    def _render(self, ref: ImageRef, src: str) -> str:
        if self.settings.data_uri_image_mode == "html":
            return f'<img alt="{html.escape(ref.alt, quote=True)}" src="{src}" />'
        return f"![{ref.alt}]({src})"

    async def to_data_uri(self, ref: ImageRef) -> Optional[str]:
        if self.pixel_copy is not None:
            data_uri = await self.pixel_copy.copy(ref.origin_el, ref.src)
            if data_uri:
                return data_uri

        if self.settings.allow_image_fetch and self.http is not None:
            return await self.http.fetch_data_uri(ref.src)
        return None

    async def resolve(self, images: List[ImageRef]) -> Dict[Tuple[str, str], str]:
        resolved: Dict[Tuple[str, str], str] = {}
        for ref in images:
            key = (ref.alt, ref.src)
            if key in resolved:
                continue

            if UrlUtils.is_data_uri(ref.src):
                resolved[key] = self._render(ref, ref.src)
                continue

            try:
                data_uri = await self.to_data_uri(ref)
            except Exception as e:
                logger.debug("Embedding %s raised %s: %s", ref.src, type(e).__name__, e)
                data_uri = None

            if data_uri:
                resolved[key] = self._render(ref, data_uri)
            else:
                logger.debug("Embedding fell back to the original reference: %s", ref.src)
                resolved[key] = ref.markdown
        return resolved

    async def embed(self, md: str, images: List[ImageRef]) -> str:
        if not self.settings.embed_images_in_markdown or not images:
            return md

        resolved = await self.resolve(images)

        def _swap(m: re.Match) -> str:
            return resolved.get((m.group(1), m.group(2).strip()), m.group(0))

        return MD_IMAGE_RE.sub(_swap, md)
