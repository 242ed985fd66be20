# ============================================
# file: src/chatdom/model.py
# ============================================
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class ExportSettings(BaseModel):
    """
    Flat, read-only export configuration. Loaded by the ConfigManager and
    passed by reference through a run; the converter never mutates it.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    # Output
    export_format: Literal["md", "json"] = "md"
    include_yaml_front_matter: bool = True
    include_toc: bool = False
    heading_style: Literal["role", "qa"] = "role"
    include_raw_url: bool = True

    # Filename
    filename_prefix: str = ""
    custom_filename: str = ""
    use_custom_filename: bool = False
    include_timestamp_in_filename: bool = True

    # Dedupe / cleanup
    dedupe_consecutive: bool = True
    strip_ui_junk: bool = True
    compact_blank_lines: bool = True
    export_visible_only: bool = True

    # Controls
    include_reasoning: bool = True
    auto_expand_reasoning: bool = False
    allow_click_load_more_buttons: bool = True

    # Math
    prefer_block_math_for_multiline: bool = True
    normalize_multiline_math: bool = True
    inline_math_delim: str = "$"
    block_math_delim: str = "$$"

    # Images
    embed_images_in_markdown: bool = False
    allow_image_fetch: bool = False
    max_embed_image_bytes: int = 2_500_000
    data_uri_image_mode: Literal["md", "html"] = "html"
    image_fetch_timeout_s: float = 20.0
    attachment_fallback_scan: bool = True
    relocate_ui_image_blocks: bool = True

    debug: bool = False
