import logging
import sys
from tqdm import tqdm

# Loggers of this project; their level follows the configured debug level
PROJECT_LOGGERS = ("chat_exporter", "chatdom", "imgfetch")

# Third-party loggers that are only interesting when something breaks
DEFAULT_SILENCED_LOGGERS = {"aiohttp": "WARNING", "PIL": "WARNING", "asyncio": "WARNING"}


class LogWithTqdm(logging.Handler):
    """
    Sends log records through `tqdm.write()` so they land above the
    per-message progress bar instead of tearing it.
    """
    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _level(value, fallback):
    if isinstance(value, str):
        return getattr(logging, value.upper(), fallback)
    return value if isinstance(value, int) else fallback


def project_levels(level, module_levels=None):
    """
    Level per project package, e.g. {"chatdom": "DEBUG", ...}.
    Entries of `module_levels` ("imgfetch.services.http_image_service": "INFO")
    refine or override the package defaults.
    """
    levels = {name: level for name in PROJECT_LOGGERS}
    levels.update(module_levels or {})
    return levels


def configure_logger(debug_level='WARNING', module_levels=None, silenced_loggers=None):
    """
    Installs the tqdm-aware handler on the root logger.

    The root stays at WARNING so library chatter is kept out; the project's
    own packages log at `debug_level`, refined by `module_levels`.
    Third-party loggers in `silenced_loggers` are capped at their own level.
    """
    handler = LogWithTqdm()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name, level in project_levels(debug_level, module_levels).items():
        logging.getLogger(name).setLevel(_level(level, logging.WARNING))

    silenced = dict(DEFAULT_SILENCED_LOGGERS)
    silenced.update(silenced_loggers or {})
    for name, level in silenced.items():
        logging.getLogger(name).setLevel(_level(level, logging.CRITICAL))
    return handler
