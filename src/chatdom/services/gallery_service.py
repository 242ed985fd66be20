from __future__ import annotations

import re
from typing import List, Optional, Set, Tuple

MD_IMAGE_RE = re.compile(r"!\[[^\]]*]\(([^)]+)\)")
HTML_IMAGE_RE = re.compile(r"<img\s+[^>]*src\s*=\s*[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)
HTML_IMAGE_PRESENT_RE = re.compile(r"<img\s+[^>]*src=")

# A UI gallery rendered as a bold "Images" label followed by a bullet list of images
UI_IMAGE_BLOCK_RE = re.compile(r"\n\*\*Images\*\*\n\n((?:- !\[[^\]]*]\([^)]+\)\n)+)\n*")
CAPTION_RE = re.compile(r"(^|\n)(图示[:：]|图[:：]|Figure[:：]|Fig\.[:：])")


def has_any_markdown_image(md: str) -> bool:
    return bool(MD_IMAGE_RE.search(md or "") or HTML_IMAGE_PRESENT_RE.search(md or ""))


def collect_srcs_from_markdown(md: str) -> Set[str]:
    srcs: Set[str] = set()
    for m in MD_IMAGE_RE.finditer(md or ""):
        if m.group(1).strip():
            srcs.add(m.group(1).strip())
    for m in HTML_IMAGE_RE.finditer(md or ""):
        if m.group(1).strip():
            srcs.add(m.group(1).strip())
    return srcs


def extract_ui_image_blocks(md: str) -> Tuple[str, List[str]]:
    """Removes every "**Images**" gallery block; returns the remaining text and the removed item lists."""
    blocks: List[str] = []

    def _cut(m: re.Match) -> str:
        blocks.append(m.group(1).strip())
        return "\n\n"

    return UI_IMAGE_BLOCK_RE.sub(_cut, md or ""), blocks


def insert_images_near_caption(md: str, image_lines: str, existing_srcs: Optional[Set[str]] = None) -> str:
    """
    Inserts image lines immediately after the first caption-like line
    ("Figure:", "图:" ...), or at the top when there is none.
    Sources already present in the fragment are skipped.
    """
    lines = [re.sub(r"^[-*]\s+", "", s.strip()) for s in (image_lines or "").split("\n") if s.strip()]

    kept: List[str] = []
    for line in lines:
        m = MD_IMAGE_RE.search(line)
        src = m.group(1).strip() if m else ""
        if not src:
            continue
        if existing_srcs is not None:
            if src in existing_srcs:
                continue
            existing_srcs.add(src)
        kept.append(line)
    if not kept:
        return md

    block = "\n\n" + "\n".join(kept) + "\n\n"

    m = CAPTION_RE.search(md)
    if m:
        line_end = md.find("\n", m.end())
        if line_end == -1:
            return md + block
        return md[:line_end] + block + md[line_end:]
    return block + md
