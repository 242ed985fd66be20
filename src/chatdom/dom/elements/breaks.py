from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState


def render_break(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    if el.tag == "hr":
        return "\n---\n"
    return "\n"


DEFINITION = ElementDefinition(tag_names=["br", "hr"], renderer=render_break)
