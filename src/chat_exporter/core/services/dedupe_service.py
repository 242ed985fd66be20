import re
from typing import List

from chat_exporter.model import ConversationMessage

ZERO_WIDTH_RE = re.compile(r"[\u200b\u200c\u200d\u2060\ufeff]")


def normalize_text(text: str) -> str:
    """Zero-width characters removed, whitespace collapsed, case folded."""
    t = ZERO_WIDTH_RE.sub("", text or "")
    return re.sub(r"\s+", " ", t).strip().casefold()


def dedupe_key(message: ConversationMessage) -> str:
    return f"{message.role}::{normalize_text(message.text or message.markdown)}"


def dedupe_consecutive(messages: List[ConversationMessage]) -> List[ConversationMessage]:
    """Drops a message whose key equals the previously kept one; non-adjacent repeats stay."""
    out: List[ConversationMessage] = []
    prev = None
    for message in messages:
        key = dedupe_key(message)
        if key == prev:
            continue
        out.append(message)
        prev = key
    return out
