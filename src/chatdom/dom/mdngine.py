import logging
from typing import Dict, List, Optional

from .core import ElementNode, Node, ShadowRootNode, SlotNode, TextNode
from .models import ConversionState, WalkState
from .registry import DOMRegistry
from .visibility import NoiseFilter
from ..model import ExportSettings
from ..services.formula_service import FormulaService
from ..services.image_service import get_background_image_url, is_likely_message_image_box

logger = logging.getLogger(__name__)

BLOCK_TAGS = {"p", "div", "section", "article", "main"}

# Tags whose own renderer decides how images/backgrounds are emitted
NO_BACKGROUND_TAGS = {"a", "pre", "code", "br", "h1", "h2", "h3", "h4", "h5", "h6", "img"}


class MDNGINE:
    """
    Markdown Engine (MDNGINE) for converting a message's render tree.

    Depth-first, pre-order walk over the node union. Shadow roots are rendered
    before the host's light children, slots are replaced by their assigned
    nodes, formula constructs are delegated to the FormulaService and the
    structural tags to the renderers registered in the DOMRegistry.
    """

    def __init__(self, settings: ExportSettings, visibility_memo: Optional[Dict[int, bool]] = None):
        """Initializes the engine by discovering and loading all tag renderers."""
        DOMRegistry.discover()
        self.settings = settings
        self.noise = NoiseFilter(settings, visibility_memo)
        self.formulas = FormulaService(settings)

    # --- Traversal helpers ---

    @staticmethod
    def traversal_nodes(el: ElementNode) -> List[Node]:
        """
        Nodes rendered for an element: its shadow root first (when populated),
        then its light children. Light children projected through one of the
        shadow root's slots are rendered at the slot only.
        """
        shadow = el.shadow_root
        if shadow is None or not shadow.children:
            return list(el.children)

        projected = {
            id(node)
            for slot in shadow.find_all(predicate=lambda e: isinstance(e, SlotNode))
            for node in slot.assigned_nodes(flatten=False)
        }
        return [shadow] + [c for c in el.children if id(c) not in projected]

    def children_to_md(self, el: ElementNode, walk: WalkState, state: ConversionState) -> str:
        return "".join(self.render(child, walk, state) for child in self.traversal_nodes(el))

    # --- Rendering ---

    def render(self, node: Optional[Node], walk: WalkState, state: ConversionState) -> str:
        if node is None:
            return ""
        if isinstance(node, TextNode):
            return node.text
        if isinstance(node, ShadowRootNode):
            return "".join(self.render(child, walk, state) for child in node.children)
        if not isinstance(node, ElementNode):
            return ""

        if self.noise.should_skip(node):
            return ""

        if isinstance(node, SlotNode):
            # Static fallback content is never rendered
            return "".join(self.render(n, walk, state) for n in node.assigned_nodes(flatten=True))

        formula = self.formulas.render(node)
        if formula is not None:
            return formula

        tag = node.tag
        if tag not in NO_BACKGROUND_TAGS:
            bg = get_background_image_url(node)
            if bg and is_likely_message_image_box(node):
                alt = node.get("aria-label") or node.get("title") or "image"
                return state.add_image(alt, bg, node)

        renderer = DOMRegistry.get_renderer(tag)
        if renderer is not None:
            return renderer(node, self, walk, state)

        inner = self.children_to_md(node, walk, state)
        if tag in BLOCK_TAGS or "-" in tag:
            stripped = inner.strip()
            return f"\n{stripped}\n" if stripped else ""
        return inner

    def render_fragment(self, content_root: Optional[ElementNode], state: ConversionState) -> str:
        """Entry point: renders one message's content root from list level 0."""
        return self.render(content_root, WalkState(), state)
