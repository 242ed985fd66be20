from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pyperclip

from chatdom.dom.builder import DOMBuilder
from chatdom.model import ExportSettings
from chat_exporter.core.controllers.export_controller import ExportController
from chat_exporter.core.exceptions import ExportError
from chat_exporter.core.managers.config_manager import config_manager
from chat_exporter.core.utils.configure_logging import configure_logger
from chat_exporter.core.utils.path_utils import PathUtils
from chat_exporter.model import ExportResult

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-exporter",
        description="Export a saved AI chat conversation page to Markdown or JSON.",
    )
    parser.add_argument("snapshot", type=Path, help="Saved HTML page of the conversation.")
    parser.add_argument("--url", default="", help="Page URL (defaults to the snapshot's own markers).")
    parser.add_argument("--format", choices=("md", "json"), help="Export format (overrides the settings).")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--output", "-o", type=Path, help="Output file path.")
    target.add_argument("--out-dir", type=Path, help="Directory for the generated file name.")
    parser.add_argument("--stdout", action="store_true", help="Print the document instead of writing a file.")
    parser.add_argument("--copy", action="store_true", help="Also copy the document to the clipboard.")
    parser.add_argument("--config", type=Path, help="JSON settings file merged over the defaults.")
    parser.add_argument("--resources", type=Path,
                        help="Resource directory of the saved page (defaults to '<name>_files').")
    parser.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
                        help="Override one setting, e.g. --set include_toc=true (repeatable).")
    parser.add_argument("--debug", action="store_true", help="Show debug information.")
    return parser


def apply_overrides(args: argparse.Namespace) -> ExportSettings:
    """Layers --config, --set, --format and --debug over the loaded configuration."""
    if args.config:
        config_manager.load_file(args.config)

    for item in args.overrides:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid override '{item}', expected key=value.")
        key = key.strip()
        config_manager.set_nested(key if "." in key else f"export.{key}", value.strip())

    if args.format:
        config_manager.set_nested("export.export_format", args.format)
    if args.debug:
        config_manager.set_nested("debug.level", "DEBUG")
    return config_manager.export_settings()


async def export_snapshot(
        snapshot: Path,
        settings: ExportSettings,
        url: str = "",
        resources_dir: Optional[Path] = None,
        show_progress: bool = True,
) -> Optional[ExportResult]:
    """Parses a saved page and runs one export over it."""
    html = snapshot.read_text(encoding="utf-8", errors="replace")
    doc = DOMBuilder().parse_doc(url, html)
    controller = ExportController(settings, resources_dir=resources_dir, show_progress=show_progress)
    return await controller.run_export(doc)


def write_result(result: ExportResult, args: argparse.Namespace) -> Optional[Path]:
    if args.stdout:
        sys.stdout.write(result.content)
        return None

    path = args.output if args.output else PathUtils.get_output_dir(args.out_dir) / result.filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(result.content, encoding="utf-8")
    return path


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = apply_overrides(args)
    except (OSError, ValueError, json.JSONDecodeError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logger(
        config_manager.get_nested("debug.level", "WARNING"),
        module_levels=config_manager.get_nested("debug.module_levels", {}),
        silenced_loggers=config_manager.get_nested("debug.silenced_loggers", {}),
    )
    resources_dir = args.resources or PathUtils.get_default_resources_dir(args.snapshot)
    logger.debug("Snapshot %s, resources %s", args.snapshot, resources_dir)

    try:
        result = asyncio.run(export_snapshot(
            args.snapshot, settings, url=args.url, resources_dir=resources_dir,
            show_progress=not args.stdout,
        ))
    except ExportError as e:
        print(f"Export failed: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Could not read snapshot: {e}", file=sys.stderr)
        return 1

    if result is None:
        return 1

    path = write_result(result, args)
    if path is not None:
        print(f"Saved {len(result.conversation.messages)} message(s) to {path}", file=sys.stderr)

    if args.copy:
        try:
            pyperclip.copy(result.content)
            print("Exported document has been copied to clipboard.", file=sys.stderr)
        except pyperclip.PyperclipException as e:
            print(f"Error copying to clipboard: {e}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
