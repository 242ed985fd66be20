# tests/core/test_image_pipeline.py
import asyncio
from unittest.mock import AsyncMock

import pytest

from chatdom.controllers.conversion_controller import ConversionController, compact_blank_lines
from chatdom.dom.builder import DOMBuilder
from chatdom.dom.models import ConversionState
from chatdom.model import ExportSettings
from chatdom.services.gallery_service import (
    collect_srcs_from_markdown,
    extract_ui_image_blocks,
    has_any_markdown_image,
    insert_images_near_caption,
)
from chatdom.services.image_service import (
    deep_collect_images,
    fallback_scan_for_message,
    get_img_src,
    is_candidate_content_image,
)

TURN_HTML = (
    '<div id="turn"><div class="content">{body}</div>'
    '<img src="https://files.example.com/upload/a.png" width="200" height="200">'
    '<img src="https://example.com/chart.png" width="200" height="200"></div>'
)


class StubClassifier:
    """Markeert alles met 'upload' in de URL als geüploade afbeelding."""

    def is_uploaded_image(self, el, src):
        return "upload" in src

    def is_licensed_image(self, el, src):
        return False


def content_of(body):
    root = DOMBuilder().parse_fragment(TURN_HTML.format(body=body))
    return root.find(class_="content")


def test_get_img_src_priority():
    """Test de bronvolgorde: currentsrc, data-src, data-original, src, srcset."""
    parse = DOMBuilder().parse_fragment
    assert get_img_src(parse('<img currentsrc="c.png" data-src="d.png" src="s.png">')) == "c.png"
    assert get_img_src(parse('<img data-original="o.png" src="s.png">')) == "o.png"
    assert get_img_src(parse('<img src=" s.png ">')) == "s.png"
    assert get_img_src(parse('<img srcset="small.png 1x, big.png 2x">')) == "small.png"
    assert get_img_src(parse("<img>")) == ""


def test_candidate_content_image_rules():
    """Test het onderscheid tussen iconen en inhoudelijke afbeeldingen."""
    parse = DOMBuilder().parse_fragment
    classifier = StubClassifier()
    icon = parse('<img src="https://e.com/i.png" width="20" height="20">')
    assert not is_candidate_content_image(classifier, icon, "https://e.com/i.png")

    unknown_size = parse('<img src="https://e.com/photo.jpg">')
    assert is_candidate_content_image(classifier, unknown_size, "https://e.com/photo.jpg")

    no_extension = parse('<img src="https://e.com/render?id=1">')
    assert not is_candidate_content_image(classifier, no_extension, "https://e.com/render?id=1")

    licensed = "https://encrypted-tbn0.gstatic.com/licensed-image?q=1"
    assert is_candidate_content_image(classifier, parse(f'<img src="{licensed}">'), licensed)


def test_deep_collect_follows_shadow_and_slots_in_document_order():
    """Test dat de diepe scan shadow roots en slots volgt, in documentvolgorde en zonder dubbelen."""
    root = DOMBuilder().parse_fragment(
        '<div><img src="1.png"><x-a><template shadowrootmode="open"><img src="2.png"><slot></slot></template>'
        '<img src="3.png"></x-a>'
        '<div aria-label="bg" style="background-image:url(4.png);width:100px;height:100px"></div></div>'
    )
    found = deep_collect_images(root)
    assert [f.src for f in found] == ["1.png", "2.png", "3.png", "4.png"]
    assert found[-1].el is None
    assert found[-1].alt == "bg"


def test_fallback_scan_user_keeps_only_uploads():
    """Test dat een gebruikersbericht alleen bijlagen terugkrijgt, als lijst onder 'Attachments'."""
    state = ConversionState()
    out = fallback_scan_for_message(StubClassifier(), "user", content_of("<p>Zie bijlage</p>"), state)
    assert out == "\n\n**Attachments**\n\n- ![image](https://files.example.com/upload/a.png)\n"
    assert [i.src for i in state.images] == ["https://files.example.com/upload/a.png"]


def test_fallback_scan_assistant_keeps_only_content_images():
    """Test dat een assistentbericht geen bijlagen overneemt en bekende bronnen overslaat."""
    state = ConversionState()
    content = content_of("<p>Uitleg</p>")
    out = fallback_scan_for_message(StubClassifier(), "assistant", content, state)
    assert out == "\n\n![image](https://example.com/chart.png)\n"

    skipped = fallback_scan_for_message(
        StubClassifier(), "assistant", content, ConversionState(), {"https://example.com/chart.png"}
    )
    assert skipped == ""


def test_gallery_block_extraction():
    """Test het uitknippen van een '**Images**' galerij."""
    md = "Uitleg\n**Images**\n\n- ![a](https://e.com/a.png)\n- ![b](https://e.com/b.png)\n\nEinde"
    rest, blocks = extract_ui_image_blocks(md)
    assert "**Images**" not in rest
    assert rest == "Uitleg\n\nEinde"
    assert blocks == ["- ![a](https://e.com/a.png)\n- ![b](https://e.com/b.png)"]


def test_insert_images_near_caption():
    """Test invoegen na de onderschrift-regel, bovenaan zonder onderschrift, en het overslaan van dubbelen."""
    md = "Intro\n\nFigure: groei\n\nUitleg"
    out = insert_images_near_caption(md, "- ![a](https://e.com/a.png)\n- ![a](https://e.com/a.png)", set())
    assert compact_blank_lines(out) == "Intro\n\nFigure: groei\n\n![a](https://e.com/a.png)\n\nUitleg"

    out = insert_images_near_caption("Tekst", "![b](https://e.com/b.png)")
    assert compact_blank_lines(out) == "![b](https://e.com/b.png)\n\nTekst"

    assert insert_images_near_caption("Tekst", "![b](u)", {"u"}) == "Tekst"


def test_markdown_image_helpers():
    """Test herkenning van bestaande afbeeldingen in Markdown en HTML."""
    md = '![a](u1) en <img alt="b" src="u2" />'
    assert collect_srcs_from_markdown(md) == {"u1", "u2"}
    assert has_any_markdown_image(md)
    assert not has_any_markdown_image("geen plaatjes")


def test_controller_user_message_gets_attachments():
    """Test de volledige conversie van een gebruikersbericht zonder inline afbeelding."""
    controller = ConversionController(ExportSettings(), StubClassifier())
    md, state = asyncio.run(controller.to_markdown(content_of("<p>Zie bijlage</p>"), "user"))
    assert md == "Zie bijlage\n\n**Attachments**\n\n- ![image](https://files.example.com/upload/a.png)"
    assert len(state.images) == 1


def test_controller_assistant_image_follows_caption():
    """Test dat teruggevonden assistent-afbeeldingen na het onderschrift komen."""
    controller = ConversionController(ExportSettings(), StubClassifier())
    md, _ = asyncio.run(controller.to_markdown(content_of("<p>Figure: groei</p><p>Uitleg</p>"), "assistant"))
    assert md == "Figure: groei\n\n![image](https://example.com/chart.png)\n\nUitleg"


def test_controller_skips_fallback_when_disabled():
    """Test dat de terugvalscan uitgeschakeld kan worden."""
    controller = ConversionController(ExportSettings(attachment_fallback_scan=False), StubClassifier())
    md, state = asyncio.run(controller.to_markdown(content_of("<p>Zie bijlage</p>"), "user"))
    assert md == "Zie bijlage"
    assert state.images == []


def test_controller_calls_embedder_with_discovered_images():
    """Test dat de embedder alle gevonden afbeeldingen krijgt en zijn uitvoer gebruikt wordt."""
    embedder = AsyncMock()
    embedder.embed.return_value = "ingebed\n\n\n\nklaar"
    controller = ConversionController(ExportSettings(), StubClassifier(), embedder=embedder)
    content = DOMBuilder().parse_fragment('<div><p>Kijk</p><img alt="x" src="https://e.com/x.png"></div>')

    md, state = asyncio.run(controller.to_markdown(content, "assistant"))

    embedder.embed.assert_awaited_once()
    sent_md, sent_images = embedder.embed.await_args.args
    assert "![x](https://e.com/x.png)" in sent_md
    assert sent_images == state.images
    assert md == "ingebed\n\nklaar"


@pytest.mark.parametrize("shadow, expected", [
    ('<template shadowrootmode="open"><p>schaduw</p></template>', "schaduw\nlicht"),
    ("", "licht"),
])
def test_controller_plain_text(shadow, expected):
    """Test de platte tekst: shadow-tekst en light-tekst met een regeleinde ertussen."""
    root = DOMBuilder().parse_fragment(f"<x-m>{shadow}<span>licht  </span></x-m>")
    controller = ConversionController(ExportSettings(), StubClassifier())
    assert controller.to_plain_text(root) == expected
