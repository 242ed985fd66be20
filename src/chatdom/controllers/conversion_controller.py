from __future__ import annotations

import logging
import re
from typing import List, Optional, Protocol, Tuple

from chatdom.dom.core import ElementNode
from chatdom.dom.mdngine import MDNGINE
from chatdom.dom.models import ConversionState, ImageRef
from chatdom.model import ExportSettings
from chatdom.services.gallery_service import (
    collect_srcs_from_markdown,
    extract_ui_image_blocks,
    has_any_markdown_image,
    insert_images_near_caption,
)
from chatdom.services.image_service import ImageClassifier, fallback_scan_for_message

logger = logging.getLogger(__name__)


class ImageEmbedder(Protocol):
    """Resolves the discovered images of one fragment and serializes the final text."""

    async def embed(self, md: str, images: List[ImageRef]) -> str: ...


def compact_blank_lines(md: str) -> str:
    """At most one blank line between blocks."""
    return re.sub(r"\n{3,}", "\n\n", md or "").strip()


class ConversionController:
    """
    Orchestrates the conversion of one message content root into Markdown.

    Render pass -> gallery relocation -> fallback scan -> embedding. Every
    message gets its own ConversionState; the engine (and with it the
    visibility memo) is shared for the whole run.
    """

    def __init__(
            self,
            settings: ExportSettings,
            classifier: ImageClassifier,
            embedder: Optional[ImageEmbedder] = None,
            engine: Optional[MDNGINE] = None,
    ) -> None:
        self.settings = settings
        self.classifier = classifier
        self.embedder = embedder
        self.engine = engine or MDNGINE(settings)

    def _compact(self, md: str) -> str:
        return compact_blank_lines(md) if self.settings.compact_blank_lines else md

    async def to_markdown(self, content_root: Optional[ElementNode], role: str) -> Tuple[str, ConversionState]:
        """
        Converts one content root.

        Returns:
            Tuple[str, ConversionState]: The finished Markdown fragment and the
            images discovered while producing it.
        """
        state = ConversionState()
        md = self._compact(self.engine.render_fragment(content_root, state))

        if self.settings.relocate_ui_image_blocks:
            md, blocks = extract_ui_image_blocks(md)
        else:
            blocks = []
        existing_srcs = collect_srcs_from_markdown(md)
        if blocks:
            logger.debug("Relocating %d UI image block(s).", len(blocks))
            md = insert_images_near_caption(md, "\n".join(blocks).strip(), existing_srcs)

        if self.settings.attachment_fallback_scan and content_root is not None and not has_any_markdown_image(md):
            extra = fallback_scan_for_message(self.classifier, role, content_root, state, existing_srcs)
            if extra:
                if role == "assistant":
                    md = insert_images_near_caption(md, extra, existing_srcs)
                else:
                    md += extra

        md = self._compact(md)
        if self.embedder is not None and state.images:
            md = await self.embedder.embed(md, state.images)
            md = self._compact(md)
        return md, state

    def to_plain_text(self, content_root: Optional[ElementNode]) -> str:
        """Shadow text and light text joined by a newline; spaces before line breaks removed."""
        if content_root is None:
            return ""
        parts: List[str] = []
        if content_root.shadow_root is not None:
            parts.append(content_root.shadow_root.text_content)
        parts.append(content_root.text_content)
        return re.sub(r"\s+\n", "\n", "\n".join(parts)).strip()
