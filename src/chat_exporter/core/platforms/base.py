# src/chat_exporter/core/platforms/base.py
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import List, Optional, Pattern, Sequence

from chatdom.dom.core import ElementNode
from chatdom.dom.models import HTMLDocument
from chat_exporter.model import Message

TITLE_SUFFIX_RE = re.compile(r"\s+-\s+.*$")


def first_text(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


class PlatformAdapter(ABC):
    """
    Interface for all front-end specific conversation adapters.

    An adapter only reads the snapshot; the only side effects it exposes are
    the controls returned by `load_more_controls` and `reasoning_toggles`,
    which the control service may activate.
    """

    name: str = ""
    hosts: Sequence[str] = ()
    load_more_patterns: Sequence[Pattern[str]] = ()
    reasoning_patterns: Sequence[Pattern[str]] = ()

    def __init__(self, doc: HTMLDocument):
        self.doc = doc

    # --- Selection ---

    @classmethod
    def matches(cls, host: str, path: str) -> bool:
        host = (host or "").lower()
        return any(h in host for h in cls.hosts)

    # --- Shared helpers ---

    @property
    def scope(self) -> ElementNode:
        return self.doc.root.find("main") or self.doc.body

    def title_fallback(self) -> str:
        return TITLE_SUFFIX_RE.sub("", self.doc.title or "conversation").strip()

    @staticmethod
    def _text_of(el: Optional[ElementNode]) -> Optional[str]:
        return el.text_content.strip() if el is not None else None

    def _controls(self, role_buttons: bool = True) -> List[ElementNode]:
        return self.scope.find_all(
            predicate=lambda el: el.tag == "button" or (role_buttons and el.get("role") == "button")
        )

    def _matching_controls(self, patterns: Sequence[Pattern[str]], role_buttons: bool = True) -> List[ElementNode]:
        return [
            el for el in self._controls(role_buttons)
            if any(p.search(el.text_content.strip()) for p in patterns)
        ]

    # --- Contract ---

    def title(self) -> str:
        return self.title_fallback()

    def scroll_candidates(self) -> List[Optional[ElementNode]]:
        return [self.doc.root.find("main"), self.doc.root]

    def scroll_container(self) -> ElementNode:
        """The scrollable conversation pane; the document root stands for the window."""
        for candidate in self.scroll_candidates():
            if candidate is not None:
                return candidate
        return self.doc.root

    @abstractmethod
    def messages(self) -> List[Message]:
        """Ordered messages with role, content root and a stable key."""
        raise NotImplementedError

    def load_more_controls(self) -> List[ElementNode]:
        return self._matching_controls(self.load_more_patterns)

    def reasoning_toggles(self) -> List[ElementNode]:
        return self._matching_controls(self.reasoning_patterns)

    # --- Image classification (ImageClassifier) ---

    def is_uploaded_image(self, el: ElementNode, src: str) -> bool:
        return False

    def is_licensed_image(self, el: ElementNode, src: str) -> bool:
        return False
