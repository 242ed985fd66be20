# src/chatdom/dom/builder.py
import logging
import re
from typing import Dict, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import PreformattedString

from .core import Box, ElementNode, ShadowRootNode, SlotNode, TextNode
from .models import HTMLDocument

logger = logging.getLogger(__name__)

# User-agent defaults for elements that never render
UA_HIDDEN_TAGS = {"head", "script", "style", "template", "title", "meta", "link", "base"}

SAVED_FROM_RE = re.compile(r"saved from url=\(\d+\)(\S+)", re.IGNORECASE)
PX_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(px)?\s*$", re.IGNORECASE)


class DOMBuilder:
    """
    Builder responsible for turning a saved page snapshot (HTML) into the
    render tree used by the converter.

    Declarative shadow roots (`<template shadowrootmode="open">`) become the
    host's encapsulated subtree and `<slot>` elements become projection points.
    Computed style and geometry are approximated from the inline style and the
    width/height attributes.
    """

    def parse_doc(self, url: str, html: str) -> HTMLDocument:
        """
        Parses raw HTML content into an HTMLDocument.

        Args:
            url (str): The page URL. When empty, the snapshot's own markers are used.
            html (str): The raw HTML string.

        Returns:
            HTMLDocument: The render tree plus page metadata.
        """
        # Basic cleanup of potentially dirty HTML (e.g., BOM)
        clean_html = (html or "").replace('\ufeff', '').strip()
        soup = BeautifulSoup(clean_html, 'html.parser')

        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""
        canonical = self._extract_canonical(soup)

        raw_url = (url or "").strip()
        if not raw_url:
            raw_url = self._extract_saved_from(soup) or canonical

        html_tag = soup.find("html")
        if html_tag is not None:
            root = self._build_element(html_tag)
        else:
            # Fragment without an <html> wrapper
            root = ElementNode(tag="html")
            self._build_children(soup, root)

        logger.debug("Snapshot parsed: url=%s title=%r", raw_url, title)
        return HTMLDocument(raw_url=raw_url, title=title, canonical_url=canonical, root=root)

    def parse_fragment(self, html: str) -> ElementNode:
        """Builds a detached tree for an HTML fragment; returns its single root element or a wrapper div."""
        soup = BeautifulSoup((html or "").replace('\ufeff', '').strip(), 'html.parser')
        wrapper = ElementNode(tag="div")
        self._build_children(soup, wrapper)
        elements = wrapper.element_children
        if len(elements) == 1 and not any(
                isinstance(c, TextNode) and c.text.strip() for c in wrapper.children):
            only = elements[0]
            only._parent = None
            return only
        return wrapper

    # --- Metadata ---

    @staticmethod
    def _extract_canonical(soup: BeautifulSoup) -> str:
        link = soup.find("link", attrs={"rel": "canonical"})
        if link and link.get("href"):
            return link.get("href").strip()
        meta = soup.find("meta", attrs={"property": "og:url"})
        return (meta.get("content") or "").strip() if meta else ""

    @staticmethod
    def _extract_saved_from(soup: BeautifulSoup) -> str:
        for item in soup.find_all(string=lambda s: isinstance(s, Comment)):
            m = SAVED_FROM_RE.search(str(item))
            if m:
                return m.group(1)
        return ""

    # --- Tree construction ---

    def _build_children(self, tag: Tag, parent) -> None:
        for child in tag.children:
            if isinstance(child, Tag):
                if child.name == "template" and self._shadow_mode(child):
                    if self._shadow_mode(child) == "open" and isinstance(parent, ElementNode) \
                            and parent.shadow_root is None:
                        shadow = ShadowRootNode()
                        self._build_children(child, shadow)
                        parent.attach_shadow(shadow)
                    # closed roots are not reachable from script, so they are dropped
                    continue
                parent.append(self._build_element(child))
            elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
                parent.append(TextNode(text=str(child)))

    @staticmethod
    def _shadow_mode(tag: Tag) -> str:
        mode = tag.get("shadowrootmode") or tag.get("shadowroot") or ""
        return mode.strip().lower()

    def _build_element(self, tag: Tag) -> ElementNode:
        attrs = self._normalize_attrs(tag.attrs)
        style = self._computed_style(tag.name, attrs.get("style", ""))
        box = self._box(attrs, style)

        if tag.name == "slot":
            element: ElementNode = SlotNode(attrs=attrs, style=style, box=box)
        else:
            element = ElementNode(tag=tag.name, attrs=attrs, style=style, box=box)

        self._build_children(tag, element)
        return element

    @staticmethod
    def _normalize_attrs(attrs: Dict) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for key, value in attrs.items():
            if isinstance(value, (list, tuple)):
                value = " ".join(value)
            out[key.lower()] = "" if value is None else str(value)
        return out

    @staticmethod
    def _parse_style(style: str) -> Dict[str, str]:
        """Parses an inline style declaration into lower-cased property names."""
        out: Dict[str, str] = {}
        # url(...) values may contain ';' inside data URIs
        for decl in re.split(r";(?![^(]*\))", style or ""):
            if ":" not in decl:
                continue
            prop, value = decl.split(":", 1)
            prop = prop.strip().lower()
            value = re.sub(r"\s*!important\s*$", "", value.strip(), flags=re.IGNORECASE)
            if prop:
                out[prop] = value
        return out

    def _computed_style(self, tag_name: str, inline: str) -> Dict[str, str]:
        style: Dict[str, str] = {}
        if tag_name in UA_HIDDEN_TAGS:
            style["display"] = "none"
        style.update(self._parse_style(inline))
        return style

    @staticmethod
    def _px(value: Optional[str]) -> Optional[float]:
        if not value:
            return None
        m = PX_RE.match(value)
        return float(m.group(1)) if m else None

    def _box(self, attrs: Dict[str, str], style: Dict[str, str]) -> Optional[Box]:
        width = self._px(style.get("width"))
        height = self._px(style.get("height"))
        if width is None:
            width = self._px(attrs.get("width"))
        if height is None:
            height = self._px(attrs.get("height"))
        if width is None and height is None:
            return None
        return Box(width=width or 0.0, height=height or 0.0)
