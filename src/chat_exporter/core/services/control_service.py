import asyncio
import inspect
import logging
import re
from typing import Any, Callable, Optional

from chatdom.dom.core import ElementNode
from chatdom.dom.visibility import NoiseFilter
from chatdom.model import ExportSettings
from chat_exporter.core.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)

EXPAND_RE = re.compile(r"显示|展开|show", re.IGNORECASE)
COLLAPSE_RE = re.compile(r"隐藏|收起|hide", re.IGNORECASE)

Activator = Callable[[ElementNode], Any]


def looks_like_expand_text(text: str) -> bool:
    t = (text or "").strip()
    return bool(EXPAND_RE.search(t)) and not COLLAPSE_RE.search(t)


def has_area(el: ElementNode) -> bool:
    """Zero-sized controls are not clickable; unknown geometry is given the benefit of the doubt."""
    return el.box is None or (el.box.width > 0 and el.box.height > 0)


class ControlService:
    """
    Activates "load more" controls and reasoning disclosures through a
    host-supplied `activate(element)` callable (sync or async). The first
    failing activation stops further attempts for that control set.
    """

    def __init__(
            self,
            settings: ExportSettings,
            adapter: PlatformAdapter,
            activate: Optional[Activator] = None,
            noise: Optional[NoiseFilter] = None,
            settle_s: float = 0.22,
    ):
        self.settings = settings
        self.adapter = adapter
        self.activate = activate
        self.noise = noise or NoiseFilter(settings)
        self.settle_s = settle_s

    async def _activate(self, el: ElementNode) -> None:
        result = self.activate(el)
        if inspect.isawaitable(result):
            await result

    async def click_load_more(self, limit: int = 10) -> int:
        if not self.settings.allow_click_load_more_buttons or self.activate is None:
            return 0

        clicked = 0
        for _ in range(limit):
            target = next(
                (b for b in self.adapter.load_more_controls() if self.noise.is_visible(b) and has_area(b)),
                None,
            )
            if target is None:
                break
            try:
                await self._activate(target)
            except Exception as e:
                logger.debug("Load-more activation failed, stopping: %s", e)
                break
            clicked += 1
            await asyncio.sleep(self.settle_s)
        return clicked

    def open_all_details(self) -> int:
        opened = 0
        for details in self.adapter.doc.root.find_all("details"):
            if not details.has_attr("open"):
                details.attrs["open"] = ""
                opened += 1
        return opened

    async def expand_reasoning(self) -> int:
        if not (self.settings.include_reasoning and self.settings.auto_expand_reasoning):
            return 0

        clicked = 0
        if self.activate is not None:
            for el in self.adapter.reasoning_toggles():
                if not looks_like_expand_text(el.text_content):
                    continue
                try:
                    await self._activate(el)
                except Exception as e:
                    logger.debug("Reasoning toggle activation failed, stopping: %s", e)
                    break
                clicked += 1
                await asyncio.sleep(self.settle_s * 0.75)

        self.open_all_details()
        return clicked
