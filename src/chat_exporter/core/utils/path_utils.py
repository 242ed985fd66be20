# src/chat_exporter/core/utils/path_utils.py
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving important package and user paths.
    """

    # --- Package specific paths

    @staticmethod
    def get_package_root() -> Path:
        """Returns the directory of the installed `chat_exporter` package."""
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_default_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    # --- User specific paths ---

    @staticmethod
    def get_user_config_dir() -> Path:
        """
        Returns the path to the user's config directory.
        (e.g., ~/.chat_exporter/)
        """
        return Path.home() / ".chat_exporter"

    @staticmethod
    def get_user_settings_file() -> Path:
        """Optional user overrides, deep-merged over the package defaults."""
        return PathUtils.get_user_config_dir() / "settings.json"

    # --- Helper methods ---

    @staticmethod
    def get_output_dir(out_dir: Optional[Path] = None) -> Path:
        """
        Returns the directory exports are written to (the working directory by default).
        Creates the directory if it doesn't exist.
        """
        path = Path(out_dir) if out_dir else Path.cwd()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def get_default_resources_dir(snapshot: Path) -> Optional[Path]:
        """
        The resource directory a browser writes next to a saved page
        ("Page.html" -> "Page_files"), when it exists.
        """
        candidate = snapshot.with_name(f"{snapshot.stem}_files")
        if candidate.is_dir():
            logger.debug("Using resource directory %s", candidate)
            return candidate
        return None
