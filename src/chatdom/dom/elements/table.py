import re
from typing import List

from ..core import ElementDefinition, ElementNode
from ..models import ConversionState, WalkState


def escape_cell(text: str) -> str:
    return re.sub(r"\s*\n\s*", " ", (text or "").replace("|", "\\|")).strip()


def render_table(el: ElementNode, engine, walk: WalkState, state: ConversionState) -> str:
    """
    Header row + separator row + body rows. The first visible row is the header.
    Cells are rendered (so inline math and links survive) and flattened to one line.
    """
    rows = [tr for tr in el.find_all("tr") if engine.noise.is_visible(tr)]
    if not rows:
        return ""

    def row_cells(tr: ElementNode) -> List[str]:
        cells = [c for c in tr.element_children if c.tag in ("th", "td") and engine.noise.is_visible(c)]
        return [escape_cell(engine.children_to_md(c, walk, state)) for c in cells]

    header = row_cells(rows[0])
    body = [row_cells(tr) for tr in rows[1:]]

    md = [
        f"| {' | '.join(header)} |",
        f"| {' | '.join('---' for _ in header)} |",
    ]
    md.extend(f"| {' | '.join(cells)} |" for cells in body)
    return "\n" + "\n".join(md) + "\n\n"


DEFINITION = ElementDefinition(tag_names=["table"], renderer=render_table)
