"""Exception types raised by the extraction pipeline."""


class ExtractorError(Exception):
    """Base class for all extractor failures."""


class InvalidInputError(ExtractorError):
    """The input URL does not reference a document."""


class NavigationError(ExtractorError):
    """Every candidate URL failed to load."""

    def __init__(self, message: str, tried: list[str] | None = None):
        super().__init__(message)
        self.tried = tried or []


class RenderingEnvironmentError(ExtractorError):
    """The headless browser could not be started. Fatal, never retried."""
