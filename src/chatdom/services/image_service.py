from __future__ import annotations

import logging
import re
from typing import List, NamedTuple, Optional, Protocol, Set

from chatdom.dom.core import ElementNode, Node, ShadowRootNode, SlotNode
from chatdom.dom.models import ConversionState

logger = logging.getLogger(__name__)

IMAGE_URL_RE = re.compile(r"\.(png|jpe?g|gif|webp|bmp|svg)(\?.*)?$", re.IGNORECASE)
BACKGROUND_URL_RE = re.compile(r"url\(\s*[\"']?(.+?)[\"']?\s*\)", re.IGNORECASE)
LICENSED_IMAGE_RE = re.compile(r"encrypted-tbn\d+\.gstatic\.com/licensed-image", re.IGNORECASE)

MESSAGE_IMAGE_MIN_PX = 55
CONTENT_IMAGE_MIN_PX = 48


class ImageClassifier(Protocol):
    """Per-platform image signals (implemented by the platform adapters)."""

    def is_uploaded_image(self, el: ElementNode, src: str) -> bool: ...

    def is_licensed_image(self, el: ElementNode, src: str) -> bool: ...


class CollectedImage(NamedTuple):
    el: Optional[ElementNode]
    src: str
    alt: str


def _pick_from_srcset(srcset: str) -> Optional[str]:
    """Extracts the first URL found in a srcset attribute."""
    for part in srcset.split(","):
        part = part.strip()
        if not part:
            continue
        url = part.split()[0]
        if url:
            return url
    return None


def get_img_src(img: ElementNode) -> str:
    """
    Source of an <img>: the resolved source recorded by the snapshot, then the
    lazy-loading data attributes, then the static src, then the first srcset entry.
    """
    if img is None:
        return ""
    for name in ("currentsrc", "data-src", "data-original", "src"):
        value = img.get(name).strip()
        if value:
            return value
    return _pick_from_srcset(img.get("srcset")) or ""


def get_background_image_url(el: ElementNode) -> str:
    bg = el.style.get("background-image", "") or el.style.get("background", "")
    m = BACKGROUND_URL_RE.search(bg)
    if not m:
        return ""
    url = m.group(1).strip()
    if not url or url == "none":
        return ""
    return url


def is_likely_message_image_box(el: ElementNode) -> bool:
    """Large enough to be an illustration rather than an icon; unknown geometry is not."""
    box = el.box
    return box is not None and box.width >= MESSAGE_IMAGE_MIN_PX and box.height >= MESSAGE_IMAGE_MIN_PX


def looks_like_image_url(url: str) -> bool:
    return bool(IMAGE_URL_RE.search(url or ""))


def is_candidate_content_image(classifier: ImageClassifier, el: ElementNode, src: str) -> bool:
    # Icons and avatars
    box = el.box
    if box is not None and (box.width < CONTENT_IMAGE_MIN_PX or box.height < CONTENT_IMAGE_MIN_PX):
        return False
    if classifier.is_licensed_image(el, src):
        return True
    if LICENSED_IMAGE_RE.search(src or ""):
        return True
    if looks_like_image_url(src):
        return True
    return is_likely_message_image_box(el)


def deep_collect_images(root: Optional[Node]) -> List[CollectedImage]:
    """
    Stack-based scan for image-bearing elements, independent of the renderer.
    Crosses shadow roots and follows slot assignments; results are in document order.
    """
    out: List[CollectedImage] = []
    seen: Set[int] = set()
    stack: List[Node] = [root] if root is not None else []

    while stack:
        node = stack.pop()
        if isinstance(node, ElementNode):
            if id(node) in seen:
                continue
            seen.add(id(node))

            if node.tag == "img":
                src = get_img_src(node)
                if src:
                    out.append(CollectedImage(el=node, src=src, alt=node.get("alt")))

            bg = get_background_image_url(node)
            if bg and is_likely_message_image_box(node):
                out.append(CollectedImage(el=None, src=bg, alt=node.get("aria-label") or "image"))

            pending: List[Node] = []
            if isinstance(node, SlotNode):
                pending.extend(node.assigned_nodes(flatten=True))
            if node.shadow_root is not None:
                pending.append(node.shadow_root)
            pending.extend(node.children)
            stack.extend(reversed(pending))
        elif isinstance(node, ShadowRootNode):
            stack.extend(reversed(node.children))
    return out


def fallback_scan_for_message(
        classifier: ImageClassifier,
        role: str,
        content_root: ElementNode,
        state: ConversionState,
        existing_srcs: Optional[Set[str]] = None,
) -> str:
    """
    Recovers images the render pass missed.

    A user message only accepts uploaded/attachment images from its own
    subtree and its container; other roles also look at sibling subtrees and
    keep content images only, leaving attachments to the attachment path.
    """
    candidates: List[ElementNode] = []
    if content_root is not None:
        candidates.append(content_root)
        if content_root.parent_element is not None:
            candidates.append(content_root.parent_element)
        if role != "user":
            if content_root.previous_element_sibling is not None:
                candidates.append(content_root.previous_element_sibling)
            if content_root.next_element_sibling is not None:
                candidates.append(content_root.next_element_sibling)

    seen_srcs: Set[str] = set()
    lines: List[str] = []

    for root in candidates:
        for item in deep_collect_images(root):
            if not item.src or item.src in seen_srcs or (existing_srcs and item.src in existing_srcs):
                continue

            is_uploaded = classifier.is_uploaded_image(item.el, item.src) if item.el is not None else False
            if role == "user":
                ok = is_uploaded
            else:
                ok = (not is_uploaded) and item.el is not None \
                     and is_candidate_content_image(classifier, item.el, item.src)
            if not ok:
                continue

            seen_srcs.add(item.src)
            lines.append(state.add_image(item.alt or "image", item.src, item.el))

    if not lines:
        return ""
    logger.debug("Fallback scan recovered %d image(s) for a %s message.", len(lines), role)
    if role == "user":
        bullets = "\n".join(f"- {line}" for line in lines)
        return f"\n\n**Attachments**\n\n{bullets}\n"
    return "\n\n" + "\n\n".join(lines) + "\n"
