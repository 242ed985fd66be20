from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState
from ...services.image_service import get_img_src


def render_image(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    src = get_img_src(el)
    if not src:
        return ""
    return state.add_image(el.get("alt"), src, el)


DEFINITION = ElementDefinition(tag_names=["img"], renderer=render_image)
