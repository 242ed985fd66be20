from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Dict, List, Optional

from tqdm.auto import tqdm

from chatdom.controllers.conversion_controller import ConversionController
from chatdom.dom.mdngine import MDNGINE
from chatdom.dom.models import HTMLDocument
from chatdom.model import ExportSettings
from chat_exporter.core.context.run_context import RunContext
from chat_exporter.core.exceptions import EmptyExtractionError
from chat_exporter.core.platform_registry import adapter_for
from chat_exporter.core.services.assembly_service import AssemblyService
from chat_exporter.core.services.control_service import Activator, ControlService
from chat_exporter.core.services.dedupe_service import dedupe_consecutive
from chat_exporter.core.services.filename_service import build_filename
from chat_exporter.model import Conversation, ConversationMessage, ExportResult
from imgfetch.services.embed_service import EmbedService
from imgfetch.services.http_image_service import HttpImageService
from imgfetch.services.pixel_copy_service import PixelCopyService

logger = logging.getLogger(__name__)


class ExportController:
    """
    Orchestrates one export run: platform selection, control activation,
    per-message conversion, deduplication and document assembly.

    Only one run may be in flight per controller; a second call while one is
    running is a no-op and returns None.
    """

    def __init__(
            self,
            settings: ExportSettings,
            *,
            resources_dir: Optional[Path] = None,
            activate: Optional[Activator] = None,
            cookies: Optional[Dict[str, str]] = None,
            show_progress: bool = True,
            assembler: Optional[AssemblyService] = None,
    ) -> None:
        self.settings = settings
        self.resources_dir = resources_dir
        self.activate = activate
        self.cookies = cookies
        self.show_progress = show_progress
        self.assembler = assembler or AssemblyService(settings)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run_export(self, doc: HTMLDocument) -> Optional[ExportResult]:
        """
        Runs a full export of a parsed snapshot.

        Raises:
            UnsupportedSiteError: No adapter recognizes the page.
            EmptyExtractionError: No message produced any text.
        """
        if self._running:
            logger.warning("An export is already running; ignoring this request.")
            return None

        self._running = True
        try:
            return await self._run(doc)
        finally:
            self._running = False

    async def _run(self, doc: HTMLDocument) -> ExportResult:
        adapter = adapter_for(doc)
        ctx = RunContext(self.settings, doc, adapter)
        engine = MDNGINE(self.settings, ctx.visibility_memo)

        logger.debug("History pane: <%s>", adapter.scroll_container().tag)
        controls = ControlService(self.settings, adapter, self.activate, engine.noise)
        ctx.count("load_more_clicks", await controls.click_load_more())
        ctx.count("reasoning_toggles", await controls.expand_reasoning())

        async with AsyncExitStack() as stack:
            embedder = await self._build_embedder(doc, stack)
            converter = ConversionController(self.settings, adapter, embedder, engine)
            convo = await self.extract_conversation(ctx, converter)

        if not convo.messages:
            raise EmptyExtractionError(adapter.name)

        ext = ".json" if self.settings.export_format == "json" else ".md"
        result = ExportResult(
            filename=build_filename(self.settings, convo.title, ext),
            content=self.assembler.build(convo),
            format=self.settings.export_format,
            conversation=convo,
        )
        logger.info("Export finished: %d message(s), %s", len(convo.messages), ctx.summary())
        return result

    async def _build_embedder(self, doc: HTMLDocument, stack: AsyncExitStack) -> Optional[EmbedService]:
        if not self.settings.embed_images_in_markdown:
            return None

        cap = self.settings.max_embed_image_bytes
        pixel_copy = PixelCopyService(self.resources_dir, cap, timeout_s=self.settings.image_fetch_timeout_s)
        http = None
        if self.settings.allow_image_fetch:
            http = await stack.enter_async_context(HttpImageService(
                page_url=doc.raw_url,
                max_bytes=cap,
                timeout_s=self.settings.image_fetch_timeout_s,
                cookies=self.cookies,
            ))
        return EmbedService(self.settings, pixel_copy=pixel_copy, http=http)

    async def extract_conversation(self, ctx: RunContext, converter: ConversionController) -> Conversation:
        """Converts every message in document order, one at a time."""
        adapter = ctx.adapter
        raw_messages = adapter.messages()
        logger.debug("%s adapter located %d message(s).", adapter.name, len(raw_messages))

        messages: List[ConversationMessage] = []
        inferred = 0
        iterator = tqdm(raw_messages, desc="Converting messages", unit="msg", leave=False,
                        disable=not self.show_progress)
        for m in iterator:
            md, state = await converter.to_markdown(m.content_root, m.role)
            text = converter.to_plain_text(m.content_root)
            ctx.count("images", len(state.images))
            if not (md.strip() or text.strip()):
                continue
            inferred += int(m.role_inferred)
            messages.append(ConversationMessage(
                role=m.role or "unknown", markdown=md, text=text, key=m.key, role_inferred=m.role_inferred,
            ))

        if inferred:
            logger.warning(
                "%d of %d message role(s) were guessed (%s has no explicit role markers); check the speaker labels.",
                inferred, len(messages), adapter.name,
            )

        if self.settings.dedupe_consecutive:
            before = len(messages)
            messages = dedupe_consecutive(messages)
            ctx.count("deduplicated", before - len(messages))

        return Conversation(platform=adapter.name, title=adapter.title(), url=ctx.doc.raw_url, messages=messages)
