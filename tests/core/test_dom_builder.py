# tests/core/test_dom_builder.py
import pytest

from chatdom.dom.builder import DOMBuilder
from chatdom.dom.core import ElementNode, ShadowRootNode, SlotNode, TextNode


@pytest.fixture
def builder():
    return DOMBuilder()


def test_parse_doc_reads_title_and_url(builder):
    """Test of titel en de meegegeven URL in het document terechtkomen."""
    doc = builder.parse_doc("https://chatgpt.com/c/42", "<html><head><title>Chat - ChatGPT</title></head><body><p>x</p></body></html>")
    assert doc.title == "Chat - ChatGPT"
    assert doc.host == "chatgpt.com"
    assert doc.path == "/c/42"
    assert doc.body.tag == "body"


def test_parse_doc_url_fallbacks(builder):
    """Test de volgorde: 'saved from url' commentaar, daarna canonical, daarna og:url."""
    saved = "<!-- saved from url=(0026)https://grok.x.ai/chat/abc --><html><body></body></html>"
    assert builder.parse_doc("", saved).raw_url == "https://grok.x.ai/chat/abc"

    canonical = '<html><head><link rel="canonical" href="https://gemini.google.com/app/1"></head><body></body></html>'
    assert builder.parse_doc("", canonical).raw_url == "https://gemini.google.com/app/1"

    og = '<html><head><meta property="og:url" content="https://chatgpt.com/c/9"></head><body></body></html>'
    assert builder.parse_doc("", og).raw_url == "https://chatgpt.com/c/9"


def test_bom_and_comments_are_dropped(builder):
    """Test dat een BOM en HTML-commentaar niet als tekst in de boom belanden."""
    root = builder.parse_fragment("\ufeff<div><!-- note -->Hallo</div>")
    assert root.tag == "div"
    assert root.text_content == "Hallo"


def test_open_shadow_root_is_attached(builder):
    """Test of een declaratieve open shadow root aan de host wordt gekoppeld en niet als kind."""
    root = builder.parse_fragment(
        '<x-card><template shadowrootmode="open"><p>inside</p><slot></slot></template><span>light</span></x-card>'
    )
    assert isinstance(root.shadow_root, ShadowRootNode)
    assert root.shadow_root.host is root
    assert [c.tag for c in root.element_children] == ["span"]
    assert root.shadow_root.text_content == "inside"


def test_closed_shadow_root_is_dropped(builder):
    """Test dat een gesloten shadow root onbereikbaar is (zoals in de browser)."""
    root = builder.parse_fragment('<x-card><template shadowrootmode="closed"><p>secret</p></template>open</x-card>')
    assert root.shadow_root is None
    assert root.text_content == "open"


def test_slot_resolves_to_host_children(builder):
    """Test of een benoemde slot de juiste light-DOM kinderen van de host oplevert."""
    root = builder.parse_fragment(
        '<x-msg><template shadowrootmode="open"><slot name="body"></slot><slot></slot></template>'
        '<b slot="body">named</b><i>default</i></x-msg>'
    )
    named, default = root.shadow_root.find_all(predicate=lambda e: isinstance(e, SlotNode))
    assert [n.text_content for n in named.assigned_nodes()] == ["named"]
    assert [n.text_content for n in default.assigned_nodes()] == ["default"]
    # Toegewezen nodes blijven kinderen van de host
    assert named.assigned_nodes()[0].parent is root


def test_explicit_slot_assignment_wins(builder):
    """Test dat een expliciet toegewezen lijst voorrang heeft op de slot-naam."""
    slot = SlotNode(attrs={"name": "x"}, assigned=[TextNode(text="extern")])
    assert [n.text_content for n in slot.assigned_nodes()] == ["extern"]


def test_computed_style_and_box(builder):
    """Test inline-stijl parsing, UA-defaults en de bounding box uit stijl of attributen."""
    root = builder.parse_fragment(
        '<div><img src="a.png" width="64" height="32">'
        '<span style="display: none !important; width: 10px; height: 12px">x</span>'
        '<script>var a;</script><p>geen box</p></div>'
    )
    img, span, script, p = root.element_children
    assert (img.box.width, img.box.height) == (64.0, 32.0)
    assert span.style["display"] == "none"
    assert (span.box.width, span.box.height) == (10.0, 12.0)
    assert script.style["display"] == "none"
    assert p.box is None


def test_element_helpers(builder):
    """Test find/closest/siblings en outer_html op de eigen nodes."""
    root = builder.parse_fragment('<div class="a b"><p id="one">x</p><p id="two">y &amp; z</p></div>')
    first = root.find("p", attrs={"id": "one"})
    second = first.next_element_sibling
    assert root.has_class("b")
    assert second.get("id") == "two"
    assert second.previous_element_sibling is first
    assert first.closest(class_="a") is root
    assert second.outer_html() == '<p id="two">y &amp; z</p>'
    assert isinstance(root, ElementNode)
