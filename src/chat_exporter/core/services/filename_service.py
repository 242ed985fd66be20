import re
from datetime import datetime
from typing import Optional

from chatdom.model import ExportSettings

ILLEGAL_RE = re.compile(r'[/\\?%*:|"<>.]')
CONTROL_RE = re.compile(r"[\x00-\x1f\x80-\x9f]")


def now_stamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")


def sanitize_filename(name: str) -> str:
    n = CONTROL_RE.sub("_", ILLEGAL_RE.sub("_", name or ""))
    n = re.sub(r"\s+", " ", n).strip()
    return n or "conversation"


def build_filename(settings: ExportSettings, title: str, ext: str, moment: Optional[datetime] = None) -> str:
    """
    prefix + [timestamp_] + sanitized base + ext.
    A custom filename replaces the title and never gets a timestamp.
    """
    prefix = settings.filename_prefix.strip()
    custom = settings.custom_filename.strip()
    base = custom if settings.use_custom_filename and custom else (title or "conversation")
    use_ts = not settings.use_custom_filename and settings.include_timestamp_in_filename
    ts = f"{now_stamp(moment)}_" if use_ts else ""
    return f"{prefix}{ts}{sanitize_filename(base)}{ext}"
