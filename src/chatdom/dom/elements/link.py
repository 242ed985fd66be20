from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState
from ...services.image_service import looks_like_image_url


def render_link(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    """
    Renders an anchor as `[text](href)`.
    Links pointing at an image file become image references instead.
    """
    href = el.get("href").strip()

    if href and looks_like_image_url(href):
        alt = (el.text_content.strip() or el.get("aria-label") or "image").strip()
        return state.add_image(alt, href)

    text = engine.children_to_md(el, walk, state).strip() or href
    return f"[{text}]({href})" if href else text


DEFINITION = ElementDefinition(tag_names=["a"], renderer=render_link)
