# src/chatdom/dom/registry.py
import importlib
import pkgutil
import logging
from typing import Callable, Dict, List, Optional

from .core import ElementDefinition

logger = logging.getLogger(__name__)


class DOMRegistry:
    """
    Central registry for the structural tag renderers.

    Dynamically discovers and loads ElementDefinition modules from the
    'chatdom.dom.elements' package and maps every declared tag name to its
    Markdown renderer.
    """

    _renderers: Dict[str, Callable] = {}
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        """
        Discovers and registers all element definitions found in the 'chatdom.dom.elements' package.

        Every module exposing a `DEFINITION` attribute (instance of `ElementDefinition`)
        contributes one renderer for each of its tag names.
        """
        if cls._loaded:
            return

        try:
            # Import the elements package to iterate over its modules
            import chatdom.dom.elements as elements_pkg

            for _, name, _ in pkgutil.iter_modules(elements_pkg.__path__):
                full_name = f"chatdom.dom.elements.{name}"
                try:
                    module = importlib.import_module(full_name)
                    if hasattr(module, "DEFINITION") and isinstance(module.DEFINITION, ElementDefinition):
                        defn = module.DEFINITION
                        for tag_name in defn.tag_names:
                            cls._renderers[tag_name] = defn.renderer
                        logger.debug(f"Renderer loaded: {', '.join(defn.tag_names)}")
                except Exception as e:
                    logger.error(f"Error loading module {name}: {e}")

            cls._loaded = True
        except ImportError as e:
            logger.error(f"Could not find elements package: {e}")

    @classmethod
    def get_renderer(cls, tag_name: str) -> Optional[Callable]:
        """Retrieves the renderer function for a specific HTML tag."""
        return cls._renderers.get(tag_name)

    @classmethod
    def get_registered_tags(cls) -> List[str]:
        """Returns all tag names that have a dedicated renderer."""
        return sorted(cls._renderers)
