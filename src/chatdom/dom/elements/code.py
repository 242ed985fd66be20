import re

from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState

LANGUAGE_CLASS_RE = re.compile(r"language-([a-z0-9_+-]+)", re.IGNORECASE)


def _language(pre: ElementNode, code_el) -> str:
    """Language from the `language-xxx` class convention, else a data-language attribute."""
    for el in (code_el, pre):
        if el is None:
            continue
        m = LANGUAGE_CLASS_RE.search(el.class_name)
        if m:
            return m.group(1)
        if el.get("data-language"):
            return el.get("data-language").strip()
    return ""


def escape_inline_code(text: str) -> str:
    return (text or "").replace("\\", "\\\\").replace("`", "\\`")


def render_pre(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    code_el = el.find("code")
    lang = _language(el, code_el)
    code = (code_el.text_content if code_el is not None else el.text_content) or ""
    code = re.sub(r"\n+$", "", code)
    return f"\n```{lang}\n{code}\n```\n"


def render_code(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    return f"`{escape_inline_code(el.text_content)}`"


def render(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    if el.tag == "pre":
        return render_pre(el, engine, walk, state)
    return render_code(el, engine, walk, state)


DEFINITION = ElementDefinition(tag_names=["pre", "code"], renderer=render)
