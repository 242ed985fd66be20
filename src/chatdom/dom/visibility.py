# src/chatdom/dom/visibility.py
import logging
from typing import Dict, Optional

from .core import ElementNode, Node
from ..model import ExportSettings

logger = logging.getLogger(__name__)

# UI controls and vector primitives never carry conversation text
SKIP_TAGS = {"button", "svg", "path", "textarea", "input", "select", "option", "noscript"}

COPY_LABELS = ("copy", "复制")


class NoiseFilter:
    """
    Decides whether an element is visually present and whether it is UI chrome.

    Visibility is read from the computed-style snapshot and the `hidden`
    attribute only; `aria-hidden` is not a visibility signal. Results are
    memoized in the run's memo for the whole export.
    """

    def __init__(self, settings: ExportSettings, memo: Optional[Dict[int, bool]] = None):
        self.settings = settings
        self.memo: Dict[int, bool] = memo if memo is not None else {}

    def is_visible(self, node: Node) -> bool:
        if not self.settings.export_visible_only:
            return True
        if not isinstance(node, ElementNode):
            return True

        key = id(node)
        cached = self.memo.get(key)
        if cached is not None:
            return cached

        ok = True
        if node.has_attr("hidden"):
            ok = False
        display = node.style.get("display", "").strip().lower()
        visibility = node.style.get("visibility", "").strip().lower()
        if display == "none" or visibility == "hidden":
            ok = False

        self.memo[key] = ok
        return ok

    def should_skip(self, node: Node) -> bool:
        if not isinstance(node, ElementNode):
            return False
        if not self.is_visible(node):
            return True
        if node.tag in SKIP_TAGS:
            return True

        if self.settings.strip_ui_junk and node.tag != "a":
            aria = node.get("aria-label").lower()
            if any(label in aria for label in COPY_LABELS):
                return True
            if "copy" in node.class_name.lower():
                return True
        return False
