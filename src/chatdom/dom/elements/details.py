from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState


def render_details(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    """Disclosure widget -> block-quoted callout with the summary as a bold label."""
    summary_el = el.find("summary")
    summary = (summary_el.text_content.strip() if summary_el is not None else "") or "Details"

    rest = "".join(
        engine.render(child, walk, state)
        for child in el.children
        if not (isinstance(child, ElementNode) and child.tag == "summary")
    ).strip()

    if not rest:
        return f"\n> **{summary}**\n\n"
    body = rest.replace("\n", "\n> ")
    return f"\n> **{summary}**\n>\n> {body}\n\n"


DEFINITION = ElementDefinition(tag_names=["details"], renderer=render_details)
