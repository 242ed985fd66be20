import re
from typing import List

from chatdom.dom.core import ElementNode
from chat_exporter.core.platforms.base import PlatformAdapter, first_text
from chat_exporter.model import Message

ESTUARY_FILE_RE = re.compile(r"/backend-api/estuary/content\?id=file_", re.IGNORECASE)
FILE_ID_RE = re.compile(r"\bid=file_", re.IGNORECASE)
UPLOADED_ALT_RE = re.compile(r"(已上传|uploaded)", re.IGNORECASE)
IMAGE_ALT_RE = re.compile(r"(图片|image)", re.IGNORECASE)

KNOWN_ROLES = ("user", "assistant", "system")


class ChatGPTAdapter(PlatformAdapter):
    """ChatGPT: every turn carries an explicit `data-message-author-role`."""

    name = "chatgpt"
    hosts = ("chatgpt.com", "chat.openai.com")
    load_more_patterns = (
        re.compile(r"show more", re.I), re.compile(r"load more", re.I),
        re.compile(r"显示更多"), re.compile(r"加载更多"), re.compile(r"展开"),
    )
    reasoning_patterns = (
        re.compile(r"已思考"), re.compile(r"显示思考"), re.compile(r"显示推理"), re.compile(r"显示思路"),
        re.compile(r"show reasoning", re.I), re.compile(r"view reasoning", re.I),
    )

    def title(self) -> str:
        main = self.doc.root.find("main")
        nav = self.doc.root.find("nav")
        current = nav.find("a", attrs={"aria-current": "page"}) if nav is not None else None
        return first_text(
            self._text_of(main.find("h1")) if main is not None else None,
            self._text_of(current),
            self.title_fallback(),
        )

    def messages(self) -> List[Message]:
        nodes = self.scope.find_all("div", attrs={"data-message-author-role": True})
        out: List[Message] = []
        for idx, node in enumerate(nodes):
            role = node.get("data-message-author-role") or "unknown"
            if role not in KNOWN_ROLES:
                continue
            content_root = node.find(class_="markdown") or node.find(class_="prose") or node
            key = node.get("data-message-id") or node.get("id") or f"{role}-{idx}"
            out.append(Message(role=role, content_root=content_root, key=key))
        return out

    def load_more_controls(self) -> List[ElementNode]:
        return self._matching_controls(self.load_more_patterns, role_buttons=False)

    def is_uploaded_image(self, el: ElementNode, src: str) -> bool:
        if not src or el is None or el.tag != "img":
            return False
        if ESTUARY_FILE_RE.search(src) or FILE_ID_RE.search(src):
            return True
        alt = el.get("alt")
        return bool(UPLOADED_ALT_RE.search(alt) and IMAGE_ALT_RE.search(alt))
