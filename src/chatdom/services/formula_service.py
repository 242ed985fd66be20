from __future__ import annotations

import logging
import re
from typing import Optional

from chatdom.dom.core import ElementNode
from chatdom.model import ExportSettings

logger = logging.getLogger(__name__)

# Attributes that may carry TeX on arbitrary elements
TEX_ATTRIBUTES = (
    "data-latex", "data-tex", "data-math", "data-equation", "data-formula",
    "latex", "tex", "math", "equation",
)
TEX_ENCODINGS = ("application/x-tex", "application/tex")

LATEX_COMMAND_RE = re.compile(r"\\[a-zA-Z]+")
LATEX_SCRIPT_RE = re.compile(r"(\^|_)\{?")
LATEX_ENV_RE = re.compile(r"\\begin\{[^}]+\}")

KATEX_CLASSES = ("katex", "katex-html", "katex-mathml")
MULTILINE_LENGTH = 120


def is_latex_like(value: Optional[str]) -> bool:
    """Heuristic: a control word, a sub/superscript or an environment."""
    if not value:
        return False
    t = value.strip()
    return bool(LATEX_COMMAND_RE.search(t) or LATEX_SCRIPT_RE.search(t) or "\\begin{" in t)


def looks_multiline_tex(tex: str) -> bool:
    t = (tex or "").strip()
    if not t:
        return False
    return "\n" in t or bool(LATEX_ENV_RE.search(t)) or "\\\\" in t or len(t) > MULTILINE_LENGTH


class FormulaService:
    """
    Recognizes formula-rendering constructs and turns them into delimited TeX.

    Recognition order: MathML, KaTeX output, MathJax containers, then TeX-like
    semantic attributes on any element. A recognized construct without
    recoverable TeX degrades to an opaque fallback instead of failing.
    """

    def __init__(self, settings: ExportSettings):
        self.settings = settings

    # -------- Normalization & wrapping --------

    def normalize(self, tex: str) -> str:
        t = (tex or "").strip()
        if not t:
            return t
        t = t.replace("\r\n", "\n")
        t = re.sub(r"\n{3,}", "\n\n", t)

        if self.settings.normalize_multiline_math:
            t = re.sub(r"\\begin\{array\}\{[^}]*\}", r"\\begin{aligned}", t)
            t = t.replace("\\end{array}", "\\end{aligned}")

        t = re.sub(r"\n\s*\n", "\n", t)
        return t.strip()

    def wrap(self, tex: str, display_preferred: bool) -> str:
        t = self.normalize(tex)
        want_block = display_preferred or (
                self.settings.prefer_block_math_for_multiline and looks_multiline_tex(t)
        )
        if want_block:
            delim = self.settings.block_math_delim
            return f"\n{delim}\n{t}\n{delim}\n"
        delim = self.settings.inline_math_delim
        return f"{delim}{t}{delim}"

    # -------- Extraction --------

    @staticmethod
    def from_attributes(el: ElementNode) -> str:
        for name in TEX_ATTRIBUTES:
            value = el.get(name)
            if value and is_latex_like(value):
                return value.strip()
        for name in ("aria-label", "title"):
            value = el.get(name)
            if value and is_latex_like(value):
                return value.strip()
        return ""

    @staticmethod
    def _tex_annotation(root: ElementNode, within_class: Optional[str] = None) -> Optional[ElementNode]:
        scope = root.find(class_=within_class) if within_class else root
        if scope is None:
            return None
        for enc in TEX_ENCODINGS:
            ann = scope.find("annotation", attrs={"encoding": enc})
            if ann is not None:
                return ann
        return None

    def from_mathml(self, el: ElementNode) -> str:
        ann = self._tex_annotation(el)
        if ann is not None and ann.text_content.strip():
            return ann.text_content.strip()
        aria = el.get("aria-label")
        if aria and is_latex_like(aria):
            return aria.strip()
        return ""

    def from_katex(self, el: ElementNode) -> str:
        host = el if el.has_class("katex") else (el.closest(class_="katex") or el)

        ann = None
        mathml = host.find("span", class_="katex-mathml")
        if mathml is not None:
            ann = mathml.find("annotation", attrs={"encoding": "application/x-tex"})
        if ann is None:
            ann = host.find("annotation", attrs={"encoding": "application/x-tex"})
        if ann is None and host.parent_element is not None:
            sibling_mathml = host.parent_element.find("span", class_="katex-mathml")
            if sibling_mathml is not None:
                ann = sibling_mathml.find("annotation", attrs={"encoding": "application/x-tex"})

        tex = ann.text_content.strip() if ann is not None else ""
        if tex:
            return tex

        return (host.get("data-tex") or host.get("data-latex") or host.get("aria-label") or "").strip()

    @staticmethod
    def is_katex_display(el: ElementNode) -> bool:
        return el.closest(class_="katex-display") is not None

    @staticmethod
    def _is_block_marked(el: ElementNode) -> bool:
        """Renderer-level block markers for the attribute path."""
        return el.has_class("math-block") or el.get("display").lower() in ("block", "true")

    def render(self, el: ElementNode) -> Optional[str]:
        """
        Renders a formula-bearing element.

        Returns:
            Optional[str]: The Markdown for the formula, or None when the
            element is not a formula construct and normal rendering applies.
        """
        tag = el.tag

        if tag == "math":
            tex = self.from_mathml(el)
            if tex:
                return self.wrap(tex, el.get("display").lower() == "block")
            logger.debug("Formula miss: MathML without TeX annotation, emitting raw markup.")
            return f"\n<!-- MathML -->\n{el.outer_html()}\n"

        if any(el.has_class(c) for c in KATEX_CLASSES):
            tex = self.from_katex(el)
            if tex:
                return self.wrap(tex, self.is_katex_display(el))
            logger.debug("Formula miss: KaTeX without annotation, keeping visible text.")
            return el.text_content

        if tag == "mjx-container":
            tex = el.get("aria-label").strip()
            if tex:
                return self.wrap(tex, el.get("display").lower() in ("true", "block"))

        tex = self.from_attributes(el)
        if tex:
            return self.wrap(tex, self._is_block_marked(el))

        return None
