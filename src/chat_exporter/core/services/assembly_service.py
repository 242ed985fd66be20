from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from chatdom.model import ExportSettings
from chat_exporter.model import Conversation, ExportedMessage, ExportRecord

logger = logging.getLogger(__name__)

ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "System"}


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def role_label(role: str) -> str:
    return ROLE_LABELS.get(role, role or "Unknown")


class AssemblyService:
    """
    Renders a Conversation into the final document: Markdown (front matter or
    header block, optional table of contents, one section per message) or the
    JSON record form.
    """

    def __init__(self, settings: ExportSettings, now: Optional[Callable[[], str]] = None):
        self.settings = settings
        self.now = now or utc_timestamp

    def build(self, convo: Conversation) -> str:
        if self.settings.export_format == "json":
            return self.build_json(convo)
        return self.build_markdown(convo)

    def _preamble(self, convo: Conversation, ts: str) -> List[str]:
        s = self.settings
        if s.include_yaml_front_matter:
            title = (convo.title or "").replace('"', '\\"')
            lines = ["---", f'title: "{title}"', f'platform: "{convo.platform}"']
            if s.include_raw_url:
                lines.append(f'source_url: "{convo.url}"')
            lines += [f'exported_at: "{ts}"', f"message_count: {len(convo.messages)}", "---", "", ""]
            return lines

        lines = [f"# {convo.title}", "", f"- Platform: {convo.platform}", f"- Exported at: {ts}"]
        if s.include_raw_url:
            lines.append(f"- Source: {convo.url}")
        return lines + ["", ""]

    def build_markdown(self, convo: Conversation) -> str:
        s = self.settings
        out = "\n".join(self._preamble(convo, self.now()))

        if s.include_toc:
            toc = "\n".join(f"- [{i}. {m.role}](#msg-{i})" for i, m in enumerate(convo.messages, start=1))
            out += f"## Table of Contents\n{toc}\n\n"

        for i, m in enumerate(convo.messages, start=1):
            anchor = f'<a id="msg-{i}"></a>\n' if s.include_toc else ""
            if s.heading_style == "qa":
                heading = "# Q" if m.role == "user" else "# A"
            else:
                heading = f"## {role_label(m.role)}"
            out += f"{anchor}{heading}\n\n{m.markdown}\n\n"

        if s.compact_blank_lines:
            out = re.sub(r"\n{3,}", "\n\n", out)
        return out.strip() + "\n"

    def build_record(self, convo: Conversation) -> ExportRecord:
        return ExportRecord(
            title=convo.title,
            platform=convo.platform,
            source_url=convo.url if self.settings.include_raw_url else None,
            exported_at=self.now(),
            message_count=len(convo.messages),
            messages=[ExportedMessage(role=m.role, text=m.text, markdown=m.markdown) for m in convo.messages],
        )

    def build_json(self, convo: Conversation) -> str:
        return self.build_record(convo).model_dump_json(indent=2, exclude_none=True)
