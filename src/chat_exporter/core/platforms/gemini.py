import logging
import re
from typing import List, Optional

from chatdom.dom.core import ElementNode
from chat_exporter.core.platforms.base import PlatformAdapter, first_text
from chat_exporter.model import Message

logger = logging.getLogger(__name__)

UPLOADED_LABEL_RE = re.compile(r"(预览图|上传.*图片|uploaded)", re.IGNORECASE)


class GeminiAdapter(PlatformAdapter):
    """
    Gemini: turns are `user-query` / `model-response` custom elements.
    Older layouts only expose `[role=listitem]` blocks; their roles are
    assumed to alternate starting with the user.
    """

    name = "gemini"
    hosts = ("gemini.google.com", "bard.google.com")
    load_more_patterns = tuple(re.compile(p, re.I) for p in (
        r"more", r"load", r"show", r"加载", r"更多", r"展开", r"继续", r"older",
    ))
    reasoning_patterns = tuple(re.compile(p, re.I) for p in (
        r"显示思路", r"隐藏思路", r"思考过程", r"show reasoning", r"hide reasoning", r"thoughts",
    ))

    def title(self) -> str:
        return first_text(
            self._text_of(self.doc.root.find("div", class_="conversation-title")),
            self._text_of(self.doc.root.find("h1")),
            self.title_fallback(),
        )

    def scroll_candidates(self) -> List[Optional[ElementNode]]:
        # The page itself scrolls; <main> only on older layouts
        return [self.doc.root, self.doc.root.find("main")]

    def messages(self) -> List[Message]:
        turns = self.doc.root.find_all(("user-query", "model-response"))
        if turns:
            return [
                Message(
                    role="user" if el.tag == "user-query" else "assistant",
                    content_root=el,
                    key=el.get("id") or f"{el.tag}-{idx}",
                )
                for idx, el in enumerate(turns)
            ]

        blocks = self.scope.find_all(attrs={"role": "listitem"})
        if blocks:
            logger.debug("Gemini: no turn elements, alternating roles over %d list items.", len(blocks))
        return [
            Message(
                role="user" if idx % 2 == 0 else "assistant",
                content_root=el,
                key=el.get("id") or f"li-{idx}",
                role_inferred=True,
            )
            for idx, el in enumerate(blocks)
        ]

    def is_uploaded_image(self, el: ElementNode, src: str) -> bool:
        if el is None or el.tag != "img":
            return False
        if el.get("data-test-id") == "uploaded-img":
            return True
        if "preview-image" in el.class_name:
            return True
        return bool(UPLOADED_LABEL_RE.search(el.get("alt")) or UPLOADED_LABEL_RE.search(el.get("aria-label")))

    def is_licensed_image(self, el: ElementNode, src: str) -> bool:
        return el is not None and el.has_class("licensed-image")
