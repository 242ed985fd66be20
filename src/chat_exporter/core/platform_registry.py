import importlib
import inspect
import logging
import pkgutil
from typing import Dict, Optional, Type

from chatdom.dom.models import HTMLDocument
from chat_exporter.core.exceptions import UnsupportedSiteError
from chat_exporter.core.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)

# The central registry for all discovered platform adapters
PlatformRegistry: Dict[str, Type[PlatformAdapter]] = {}


def discover_platforms() -> Dict[str, Type[PlatformAdapter]]:
    """
    Scans the 'chat_exporter.core.platforms' package for classes that inherit from PlatformAdapter.
    """
    import chat_exporter.core.platforms as platforms_pkg

    discovered: Dict[str, Type[PlatformAdapter]] = {}
    for _, name, _ in pkgutil.iter_modules(platforms_pkg.__path__):
        if name == "base":
            continue
        full_name = f"chat_exporter.core.platforms.{name}"
        try:
            module = importlib.import_module(full_name)
        except Exception as e:
            logger.error("Failed to load platform module %s: %s", full_name, e, exc_info=True)
            continue

        for _, obj in inspect.getmembers(module, inspect.isclass):
            if issubclass(obj, PlatformAdapter) and obj is not PlatformAdapter and obj.name:
                discovered[obj.name] = obj
                logger.debug("Discovered platform adapter '%s'", obj.name)
    return discovered


def register_all_platforms() -> None:
    """Discovers and registers all available platform adapters (once)."""
    if PlatformRegistry:
        return
    PlatformRegistry.update(discover_platforms())
    logger.debug("Successfully registered %d platform adapters.", len(PlatformRegistry))


def detect_platform(host: str, path: str) -> Optional[Type[PlatformAdapter]]:
    register_all_platforms()
    for name in sorted(PlatformRegistry):
        adapter_cls = PlatformRegistry[name]
        if adapter_cls.matches(host, path):
            return adapter_cls
    return None


def adapter_for(doc: HTMLDocument) -> PlatformAdapter:
    """
    Selects the adapter for a snapshot by its origin and path.

    Raises:
        UnsupportedSiteError: When no adapter recognizes the page.
    """
    adapter_cls = detect_platform(doc.host, doc.path)
    if adapter_cls is None:
        raise UnsupportedSiteError(doc.raw_url)
    logger.info("Platform detected: %s", adapter_cls.name)
    return adapter_cls(doc)
