class ExportError(Exception):
    """Base class for conditions that terminate an export run."""


class UnsupportedSiteError(ExportError):
    """No platform adapter recognizes the page."""

    def __init__(self, url: str = ""):
        self.url = url
        super().__init__(f"Unsupported site: {url}" if url else "Unsupported site.")


class EmptyExtractionError(ExportError):
    """The adapter ran but no message produced any text."""

    def __init__(self, platform: str = ""):
        self.platform = platform
        super().__init__("No messages found.")
