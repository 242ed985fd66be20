# src/chatdom/dom/core.py
from __future__ import annotations

import html
import re
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

# Elements whose start tag has no closing counterpart when serialized
VOID_TAGS = {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}


class Box(BaseModel):
    """Bounding box of an element as captured in the snapshot (CSS pixels)."""
    width: float = 0.0
    height: float = 0.0


class Node(BaseModel):
    """
    Base model for every node of the simplified render tree.

    The parent link is a private attribute so that trees never serialize
    (or compare) through their back-references.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    _parent: Optional["Node"] = PrivateAttr(default=None)

    @property
    def parent(self) -> Optional["Node"]:
        return self._parent

    @property
    def parent_element(self) -> Optional["ElementNode"]:
        """Returns the parent if it is an element (a shadow root is not)."""
        return self._parent if isinstance(self._parent, ElementNode) else None

    @property
    def text_content(self) -> str:
        return ""

    def _adopt(self, children: Iterable["Node"]) -> None:
        for child in children:
            child._parent = self


class TextNode(Node):
    text: str = ""

    @property
    def text_content(self) -> str:
        return self.text


class _ContainerMixin:
    """Shared child handling for elements and shadow roots (both define `children`)."""

    def append(self, child: Node) -> Node:
        child._parent = self  # type: ignore[assignment]
        self.children.append(child)
        return child

    @property
    def element_children(self) -> List["ElementNode"]:
        return [c for c in self.children if isinstance(c, ElementNode)]

    @property
    def text_content(self) -> str:
        return "".join(c.text_content for c in self.children)

    def iter_elements(self) -> Iterator["ElementNode"]:
        """Yields descendant elements in document order (light tree only)."""
        for child in self.children:
            if isinstance(child, ElementNode):
                yield child
                yield from child.iter_elements()

    def find_all(
            self,
            tag: Union[str, Iterable[str], None] = None,
            class_: Optional[str] = None,
            attrs: Optional[Dict[str, Any]] = None,
            predicate: Optional[Callable[["ElementNode"], bool]] = None,
    ) -> List["ElementNode"]:
        """BeautifulSoup-style search over the light descendants."""
        return [el for el in self.iter_elements() if el.matches(tag, class_, attrs, predicate)]

    def find(
            self,
            tag: Union[str, Iterable[str], None] = None,
            class_: Optional[str] = None,
            attrs: Optional[Dict[str, Any]] = None,
            predicate: Optional[Callable[["ElementNode"], bool]] = None,
    ) -> Optional["ElementNode"]:
        for el in self.iter_elements():
            if el.matches(tag, class_, attrs, predicate):
                return el
        return None


class ElementNode(_ContainerMixin, Node):
    """
    A regular element. Optionally hosts an encapsulated subtree (shadow root)
    that is not reachable through `children`.
    """
    tag: str
    attrs: Dict[str, str] = Field(default_factory=dict)
    children: List[Node] = Field(default_factory=list)
    style: Dict[str, str] = Field(default_factory=dict)
    box: Optional[Box] = None
    shadow_root: Optional["ShadowRootNode"] = None

    def model_post_init(self, __context: Any) -> None:
        self._adopt(self.children)
        if self.shadow_root is not None:
            self.shadow_root._parent = self

    # --- Attribute access ---

    def get(self, name: str, default: str = "") -> str:
        value = self.attrs.get(name)
        return default if value is None else value

    def has_attr(self, name: str) -> bool:
        return name in self.attrs

    @property
    def classes(self) -> List[str]:
        return self.get("class").split()

    @property
    def class_name(self) -> str:
        return self.get("class")

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def attach_shadow(self, root: "ShadowRootNode") -> "ShadowRootNode":
        root._parent = self
        self.shadow_root = root
        return root

    # --- Matching & navigation ---

    def matches(
            self,
            tag: Union[str, Iterable[str], None] = None,
            class_: Optional[str] = None,
            attrs: Optional[Dict[str, Any]] = None,
            predicate: Optional[Callable[["ElementNode"], bool]] = None,
    ) -> bool:
        if tag is not None:
            tags = {tag} if isinstance(tag, str) else set(tag)
            if self.tag not in tags:
                return False
        if class_ is not None and not self.has_class(class_):
            return False
        for name, expected in (attrs or {}).items():
            actual = self.attrs.get(name)
            if expected is True:
                if actual is None:
                    return False
            elif isinstance(expected, re.Pattern):
                if actual is None or not expected.search(actual):
                    return False
            elif actual != expected:
                return False
        if predicate is not None and not predicate(self):
            return False
        return True

    def closest(
            self,
            tag: Union[str, Iterable[str], None] = None,
            class_: Optional[str] = None,
            attrs: Optional[Dict[str, Any]] = None,
            predicate: Optional[Callable[["ElementNode"], bool]] = None,
    ) -> Optional["ElementNode"]:
        """Nearest inclusive ancestor matching the filters; does not leave the shadow scope."""
        node: Optional[ElementNode] = self
        while node is not None:
            if node.matches(tag, class_, attrs, predicate):
                return node
            node = node.parent_element
        return None

    def _siblings(self) -> List["ElementNode"]:
        parent = self.parent
        if not isinstance(parent, (ElementNode, ShadowRootNode)):
            return []
        return parent.element_children

    @property
    def previous_element_sibling(self) -> Optional["ElementNode"]:
        sibs = self._siblings()
        for i, sib in enumerate(sibs):
            if sib is self:
                return sibs[i - 1] if i > 0 else None
        return None

    @property
    def next_element_sibling(self) -> Optional["ElementNode"]:
        sibs = self._siblings()
        for i, sib in enumerate(sibs):
            if sib is self:
                return sibs[i + 1] if i + 1 < len(sibs) else None
        return None

    # --- Serialization ---

    def outer_html(self) -> str:
        attrs = "".join(f' {k}="{html.escape(v, quote=True)}"' for k, v in self.attrs.items())
        if self.tag in VOID_TAGS:
            return f"<{self.tag}{attrs}>"
        inner = "".join(
            c.outer_html() if isinstance(c, ElementNode) else html.escape(c.text_content, quote=False)
            for c in self.children
        )
        return f"<{self.tag}{attrs}>{inner}</{self.tag}>"


class ShadowRootNode(_ContainerMixin, Node):
    """Encapsulated subtree owned by (and lifetime-bound to) its host element."""
    children: List[Node] = Field(default_factory=list)

    def model_post_init(self, __context: Any) -> None:
        self._adopt(self.children)

    @property
    def host(self) -> Optional[ElementNode]:
        return self.parent_element


class SlotNode(ElementNode):
    """
    Content projection point. Resolved at traversal time to the nodes assigned
    to it; those nodes belong to the host's light tree, not to the slot.
    """
    tag: str = "slot"
    assigned: Optional[List[Node]] = Field(default=None, exclude=True, repr=False)

    @property
    def name(self) -> str:
        return self.get("name")

    def _shadow_host(self) -> Optional[ElementNode]:
        node = self.parent
        while node is not None and not isinstance(node, ShadowRootNode):
            node = node.parent
        return node.host if isinstance(node, ShadowRootNode) else None

    def assigned_nodes(self, flatten: bool = True) -> List[Node]:
        if self.assigned is not None:
            nodes = list(self.assigned)
        else:
            host = self._shadow_host()
            if host is None:
                return []
            nodes = []
            for child in host.children:
                slot_name = child.get("slot") if isinstance(child, ElementNode) else ""
                if slot_name == self.name:
                    nodes.append(child)

        if not flatten:
            return nodes

        out: List[Node] = []
        for node in nodes:
            if isinstance(node, SlotNode):
                inner = node.assigned_nodes(flatten=True)
                out.extend(inner if inner else node.children)
            else:
                out.append(node)
        return out


NodeRef = Union[TextNode, ElementNode, ShadowRootNode, SlotNode]


class ElementDefinition:
    """
    Configuration object binding one or more HTML tags to a Markdown renderer.
    Picked up by the DOMRegistry from the `chatdom.dom.elements` package.
    """

    def __init__(self, tag_names: List[str], renderer: Callable[..., str]):
        self.tag_names = list(tag_names)
        self.renderer = renderer


ElementNode.model_rebuild()
ShadowRootNode.model_rebuild()
SlotNode.model_rebuild()
