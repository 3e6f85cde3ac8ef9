"""Exceptions raised by the capture pipeline."""

from typing import Optional


class PageSenseError(RuntimeError):
    """Base class for PageSense failures."""


class MalformedExtractionError(PageSenseError):
    """Raised when an extraction result has no node map or root id."""


class CaptureError(PageSenseError):
    """
    Raised when a whole capture fails.

    The original exception is chained (``raise ... from exc``) and also kept
    on ``cause`` so callers can inspect it without walking ``__cause__``.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
