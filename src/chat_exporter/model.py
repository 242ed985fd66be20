# ============================================
# file: src/chat_exporter/model.py
# ============================================
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from chatdom.dom.core import ElementNode

Role = Literal["user", "assistant", "system", "unknown"]


class Message(BaseModel):
    """One conversational turn as located by a platform adapter (read-only to the converter)."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    role: Role = "unknown"
    content_root: ElementNode = Field(repr=False)
    key: str = ""
    # True when the role came from a guess (keywords or turn alternation)
    role_inferred: bool = False


class ConversationMessage(BaseModel):
    role: str
    markdown: str = ""
    text: str = ""
    key: str = ""
    role_inferred: bool = False


class Conversation(BaseModel):
    """Extraction result handed to the document assembler; never modified afterwards."""
    model_config = ConfigDict(frozen=True)

    platform: str
    title: str = ""
    url: str = ""
    messages: List[ConversationMessage] = Field(default_factory=list)


class ExportedMessage(BaseModel):
    role: str
    text: str
    markdown: str


class ExportRecord(BaseModel):
    """Structured-record (JSON) form of an exported conversation."""
    title: str
    platform: str
    source_url: Optional[str] = None
    exported_at: str
    message_count: int
    messages: List[ExportedMessage] = Field(default_factory=list)


class ExportResult(BaseModel):
    """What a finished export run hands to the download/clipboard side."""
    filename: str
    content: str
    format: Literal["md", "json"]
    conversation: Conversation
