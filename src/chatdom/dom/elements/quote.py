from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState


def quote_lines(text: str) -> str:
    return "\n".join(f"> {line}" if line else ">" for line in text.split("\n"))


def render_blockquote(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    inner = engine.children_to_md(el, walk, state).strip()
    return f"\n{quote_lines(inner)}\n\n"


DEFINITION = ElementDefinition(tag_names=["blockquote"], renderer=render_blockquote)
