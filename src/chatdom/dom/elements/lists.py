import re
from typing import List

from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState

LIST_TAGS = ("ul", "ol")


def render_list(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    """
    Renders visible <li> children as `- ` / `N. ` items, indented two spaces
    per list level. Nested lists keep their own lines under the parent item.
    """
    items = [c for c in el.element_children if c.tag == "li" and engine.noise.is_visible(c)]
    if not items:
        return ""

    ordered = el.tag == "ol"
    indent = "  " * walk.list_level
    inner_walk = walk.nested_list()
    lines: List[str] = []

    for i, li in enumerate(items, start=1):
        prefix = f"{i}. " if ordered else "- "
        text_parts: List[str] = []
        nested: List[str] = []
        for child in engine.traversal_nodes(li):
            if isinstance(child, ElementNode) and child.tag in LIST_TAGS:
                block = engine.render(child, inner_walk, state).strip("\n")
                if block:
                    nested.append(block)
            else:
                text_parts.append(engine.render(child, inner_walk, state))

        content = re.sub(r"\n+", " ", "".join(text_parts).strip())
        lines.append(f"{indent}{prefix}{content}")
        lines.extend(nested)

    return "\n" + "\n".join(lines) + "\n"


def render_list_item(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    # Stray <li> outside a list
    return engine.children_to_md(el, walk, state)


def render(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    if el.tag == "li":
        return render_list_item(el, engine, walk, state)
    return render_list(el, engine, walk, state)


DEFINITION = ElementDefinition(tag_names=["ul", "ol", "li"], renderer=render)
