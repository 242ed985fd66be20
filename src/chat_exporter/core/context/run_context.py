# src/chat_exporter/core/context/run_context.py
import logging
from collections import Counter
from typing import Dict, Optional

from chatdom.dom.models import HTMLDocument
from chatdom.model import ExportSettings
from chat_exporter.core.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)


class RunContext:
    """
    State of one export run, passed by reference through the call chain.
    Holds the settings snapshot, the selected adapter, the visibility memo
    (filled by the noise filter, never invalidated mid-run) and counters.
    """

    def __init__(self, settings: ExportSettings, doc: HTMLDocument, adapter: Optional[PlatformAdapter] = None):
        self.settings = settings
        self.doc = doc
        self.adapter = adapter
        self.visibility_memo: Dict[int, bool] = {}
        self.counters: Counter = Counter()

    @property
    def platform(self) -> str:
        return self.adapter.name if self.adapter is not None else "unknown"

    def count(self, name: str, n: int = 1) -> None:
        self.counters[name] += n

    def summary(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in sorted(self.counters.items())) or "nothing recorded"
