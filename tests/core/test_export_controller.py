# tests/core/test_export_controller.py
import asyncio
import json

import pytest
from PIL import Image

from chatdom.dom.builder import DOMBuilder
from chatdom.model import ExportSettings
from chat_exporter.core.controllers.export_controller import ExportController
from chat_exporter.core.exceptions import EmptyExtractionError, UnsupportedSiteError
from chat_exporter.core.platforms.gemini import GeminiAdapter
from chat_exporter.core.services.assembly_service import AssemblyService
from chat_exporter.core.services.control_service import ControlService, has_area, looks_like_expand_text

FIXED_TS = "2026-01-02T03:04:05.000Z"
PAGE_URL = "https://chatgpt.com/c/123"

KATEX_INLINE = (
    '<span class="katex"><span class="katex-mathml"><math><semantics>'
    '<annotation encoding="application/x-tex">x^2</annotation></semantics></math></span>'
    '<span class="katex-html" aria-hidden="true">x2</span></span>'
)
KATEX_BLOCK = (
    '<span class="katex-display"><span class="katex"><span class="katex-mathml"><math><semantics>'
    '<annotation encoding="application/x-tex">\\begin{array}{c} a \\\\ b \\end{array}</annotation>'
    '</semantics></math></span></span></span>'
)

SNAPSHOT = f"""
<html><head><title>Kwadraten - ChatGPT</title></head><body><main>
<div data-message-author-role="user" data-message-id="u1"><div class="whitespace-pre-wrap">Wat is {KATEX_INLINE}?</div></div>
<div data-message-author-role="assistant" data-message-id="a1"><div class="markdown prose"><p>Zo:</p>{KATEX_BLOCK}
<img src="https://example.com/plot.png" alt="plot" width="300" height="200"><button>Copy</button></div></div>
<button>Show more</button>
</main></body></html>
"""


def parse(html=SNAPSHOT, url=PAGE_URL):
    return DOMBuilder().parse_doc(url, html)


def controller(settings=None, **kwargs):
    settings = settings or ExportSettings()
    kwargs.setdefault("show_progress", False)
    return ExportController(settings, assembler=AssemblyService(settings, now=lambda: FIXED_TS), **kwargs)


def run(ctrl, doc):
    return asyncio.run(ctrl.run_export(doc))


def test_end_to_end_markdown():
    """Test een volledige export: front matter, inline en blok-wiskunde en de afbeelding."""
    result = run(controller(), parse())

    assert result.format == "md"
    assert result.filename.endswith("_Kwadraten.md")
    content = result.content
    assert content.startswith('---\ntitle: "Kwadraten"\nplatform: "chatgpt"\nsource_url: "https://chatgpt.com/c/123"\n')
    assert f'exported_at: "{FIXED_TS}"' in content
    assert "message_count: 2" in content
    assert "## User\n\nWat is $x^2$?\n\n## Assistant" in content
    assert "## Assistant\n\nZo:\n\n$$\n\\begin{aligned} a \\\\ b \\end{aligned}\n$$\n\n![plot](https://example.com/plot.png)" in content
    assert "Copy" not in content
    assert content.endswith("\n") and not content.endswith("\n\n")

    messages = result.conversation.messages
    assert [m.key for m in messages] == ["u1", "a1"]


def test_export_is_idempotent():
    """Test dat twee runs over dezelfde snapshot identieke output geven."""
    doc = parse()
    ctrl = controller()
    first = run(ctrl, doc)
    second = run(ctrl, doc)
    assert first.content == second.content
    assert not ctrl.running


def test_json_export():
    """Test de JSON-export met .json bestandsnaam."""
    result = run(controller(ExportSettings(export_format="json")), parse())
    assert result.filename.endswith(".json")
    record = json.loads(result.content)
    assert record["platform"] == "chatgpt"
    assert [m["role"] for m in record["messages"]] == ["user", "assistant"]
    assert record["messages"][0]["markdown"] == "Wat is $x^2$?"


def test_embedding_uses_local_pixels(tmp_path):
    """Test embedden via de lokale resources-map van de opgeslagen pagina."""
    resources = tmp_path / "Kwadraten_files"
    resources.mkdir()
    Image.new("RGB", (8, 8), "blue").save(resources / "plot.png")

    settings = ExportSettings(embed_images_in_markdown=True)
    result = run(controller(settings, resources_dir=resources), parse())
    assert '<img alt="plot" src="data:image/png;base64,' in result.content
    assert "https://example.com/plot.png" not in result.content


def test_oversized_local_image_does_not_abort_export(tmp_path, monkeypatch):
    """Test dat een afbeelding boven de pixellimiet terugvalt op de oorspronkelijke referentie."""
    resources = tmp_path / "Kwadraten_files"
    resources.mkdir()
    Image.new("RGB", (8, 8), "blue").save(resources / "plot.png")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 4)

    settings = ExportSettings(embed_images_in_markdown=True)
    result = run(controller(settings, resources_dir=resources), parse())
    assert "![plot](https://example.com/plot.png)" in result.content


def test_malformed_image_source_with_fetch_enabled():
    """Test dat een onleesbare afbeeldingsbron met ophalen aan de export niet stopt."""
    html = SNAPSHOT.replace("https://example.com/plot.png", "http://[::1/x.png")
    settings = ExportSettings(embed_images_in_markdown=True, allow_image_fetch=True)
    result = run(controller(settings), parse(html))
    assert result.conversation.messages[1].role == "assistant"
    assert "data:image" not in result.content


def test_empty_extraction_raises():
    """Test dat een pagina zonder bruikbare berichten een fout geeft."""
    hidden = (
        '<html><body><main><div data-message-author-role="user">'
        '<p style="display:none">   </p></div></main></body></html>'
    )
    with pytest.raises(EmptyExtractionError, match="No messages found."):
        run(controller(), parse(hidden))


def test_unsupported_site_resets_running_flag():
    """Test dat een onbekende site een fout geeft en de run-vlag weer vrijgeeft."""
    ctrl = controller()
    with pytest.raises(UnsupportedSiteError):
        run(ctrl, parse(url="https://example.com/chat"))
    assert not ctrl.running


def test_second_run_while_running_is_ignored():
    """Test de run-guard: een tweede export tijdens een lopende run doet niets."""
    nested = []
    doc = parse()

    async def activate(el):
        nested.append(await ctrl.run_export(doc))
        raise RuntimeError("knop verdwenen")

    ctrl = controller(activate=activate)
    result = run(ctrl, doc)
    assert nested == [None]
    assert result is not None
    assert "message_count: 2" in result.content


# --- ControlService ---

GEMINI_HTML = """
<html><body><main>
<button>Load older</button><div role="button" style="display:none">More</div>
<button>Show reasoning</button><button>Hide reasoning</button>
<details><summary>Gedachten</summary><p>stap 1</p></details>
<user-query><p>vraag</p></user-query>
</main></body></html>
"""


def gemini_adapter():
    return GeminiAdapter(parse(GEMINI_HTML, "https://gemini.google.com/app/1"))


def test_click_load_more_repeats_until_limit():
    """Test dat de zichtbare 'load more' knop herhaald geactiveerd wordt, tot het maximum."""
    clicked = []
    service = ControlService(ExportSettings(), gemini_adapter(), activate=clicked.append, settle_s=0)
    assert asyncio.run(service.click_load_more(limit=3)) == 3
    assert {el.text_content for el in clicked} == {"Load older"}


def test_click_load_more_disabled_or_without_activator():
    """Test dat er niets gebeurt zonder toestemming of zonder activator."""
    adapter = gemini_adapter()
    off = ControlService(ExportSettings(allow_click_load_more_buttons=False), adapter, activate=print, settle_s=0)
    assert asyncio.run(off.click_load_more()) == 0
    assert asyncio.run(ControlService(ExportSettings(), adapter, settle_s=0).click_load_more()) == 0


def test_expand_reasoning_and_details():
    """Test het uitklappen van redeneringen: alleen 'show' teksten, plus alle <details>."""
    clicked = []
    adapter = gemini_adapter()
    settings = ExportSettings(auto_expand_reasoning=True)
    service = ControlService(settings, adapter, activate=clicked.append, settle_s=0)

    assert asyncio.run(service.expand_reasoning()) == 1
    assert [el.text_content for el in clicked] == ["Show reasoning"]
    assert adapter.doc.root.find("details").has_attr("open")


def test_expand_reasoning_is_gated():
    """Test dat uitklappen alleen gebeurt als het is ingeschakeld."""
    adapter = gemini_adapter()
    service = ControlService(ExportSettings(), adapter, activate=print, settle_s=0)
    assert asyncio.run(service.expand_reasoning()) == 0
    assert not adapter.doc.root.find("details").has_attr("open")


def test_control_helpers():
    """Test de hulpfuncties voor knopteksten en afmetingen."""
    assert looks_like_expand_text("Show thinking")
    assert looks_like_expand_text("展开")
    assert not looks_like_expand_text("Hide thinking")
    parse_fragment = DOMBuilder().parse_fragment
    assert has_area(parse_fragment("<button>x</button>"))
    assert not has_area(parse_fragment('<button style="width:0;height:20px">x</button>'))
