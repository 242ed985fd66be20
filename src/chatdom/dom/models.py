# src/chatdom/dom/models.py
import re
from typing import Optional, List
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from .core import ElementNode


class HTMLDocument(BaseModel):
    """
    Represents a parsed conversation page snapshot.

    Serves as the root container for the render tree plus the page-level
    metadata the platform adapters and the document assembler need.
    """
    raw_url: str = ""
    title: str = ""
    canonical_url: str = ""
    root: ElementNode

    @property
    def host(self) -> str:
        return urlparse(self.raw_url).netloc.lower()

    @property
    def path(self) -> str:
        return urlparse(self.raw_url).path or "/"

    @property
    def body(self) -> ElementNode:
        return self.root.find("body") or self.root


def image_markdown(alt: str, src: str) -> str:
    """Markdown image reference; brackets and line breaks are removed from the alt text."""
    clean_alt = re.sub(r"\s+", " ", re.sub(r"[\[\]]", "", alt or "")).strip()
    return f"![{clean_alt}]({(src or '').strip()})"


class ImageRef(BaseModel):
    """One image discovered while rendering a message."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    token: str
    alt: str
    src: str
    origin_el: Optional[ElementNode] = Field(default=None, exclude=True, repr=False)

    @property
    def markdown(self) -> str:
        return image_markdown(self.alt, self.src)


class ConversionState(BaseModel):
    """
    Per-message accumulator. Images are kept in discovery order so that
    embedding can be resolved later without touching the render pass.
    """
    images: List[ImageRef] = Field(default_factory=list)

    def add_image(self, alt: str, src: str, el: Optional[ElementNode] = None) -> str:
        """Registers an image and returns its Markdown reference ("" when there is no source)."""
        src = (src or "").strip()
        if not src:
            return ""
        alt = re.sub(r"\s+", " ", re.sub(r"[\[\]]", "", alt or "")).strip()
        ref = ImageRef(token=f"uai-img-{len(self.images)}", alt=alt, src=src, origin_el=el)
        self.images.append(ref)
        return ref.markdown


class WalkState(BaseModel):
    """Inherited traversal state (immutable; nested levels get a copy)."""
    model_config = ConfigDict(frozen=True)

    list_level: int = 0

    def nested_list(self) -> "WalkState":
        return WalkState(list_level=self.list_level + 1)
