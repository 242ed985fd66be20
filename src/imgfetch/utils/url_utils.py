# src/imgfetch/utils/url_utils.py
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urljoin, urlparse

logger = logging.getLogger(__name__)


class UrlUtils:
    """A collection of static methods for image URL parsing and resolution."""

    @staticmethod
    def is_data_uri(url: str) -> bool:
        return (url or "").strip().lower().startswith("data:")

    @staticmethod
    def is_http_url(url: str) -> bool:
        try:
            parsed = urlparse(url or "")
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    @staticmethod
    def is_relative_url(url: str) -> bool:
        """
        Checks if a URL is relative.
        """
        try:
            parsed = urlparse(url)
            return not parsed.scheme and not parsed.netloc
        except ValueError:
            return False

    @staticmethod
    def resolve(page_url: str, url: str) -> str:
        """
        Creates an absolute URL from the page URL and a potentially relative source.
        Fragments are dropped, as they are client-side only.
        Returns an empty string for a source that cannot be parsed.
        """
        if not page_url:
            return url
        try:
            absolute_url = urljoin(page_url, url)
            return urlparse(absolute_url)._replace(fragment='').geturl()
        except ValueError:
            logger.debug(f"Could not resolve invalid URL: {url}")
            return ""

    @staticmethod
    def local_resource_path(resources_dir: Optional[Path], url: str) -> Optional[Path]:
        """
        Maps an image source onto a file of a saved page's resource directory.

        - file:// URLs map onto their own path.
        - Relative sources are resolved against the resource directory's parent
          (the "Page_files/x.png" convention of saved pages), then against the directory itself.
        - Absolute http(s) sources match on their file name.
        Returns None when no readable file matches.
        """
        if not url or UrlUtils.is_data_uri(url):
            return None
        try:
            parsed = urlparse(url)
        except ValueError:
            return None

        candidates = []
        if parsed.scheme == "file":
            candidates.append(Path(unquote(parsed.path)))
        elif resources_dir is not None:
            if UrlUtils.is_relative_url(url):
                rel = unquote(parsed.path).lstrip("/")
                candidates.append(resources_dir.parent / rel)
                candidates.append(resources_dir / rel)
                candidates.append(resources_dir / Path(rel).name)
            elif parsed.path:
                name = Path(unquote(parsed.path)).name
                if name:
                    candidates.append(resources_dir / name)

        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None
