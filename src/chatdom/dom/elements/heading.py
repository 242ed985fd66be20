from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState


def render_heading(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    """
    Renders h1-h6 as an ATX heading padded by blank lines.
    The level is taken from the tag name (e.g., 'h3' -> 3).
    """
    try:
        level = int(el.tag[1])
    except (ValueError, IndexError, TypeError):
        level = 1

    text = engine.children_to_md(el, walk, state).strip()
    return f"\n{'#' * level} {text}\n\n"


# --- ELEMENT DEFINITION ---

DEFINITION = ElementDefinition(
    tag_names=["h1", "h2", "h3", "h4", "h5", "h6"],
    renderer=render_heading,
)
