"""Core module - Capture coordination, browser access and errors."""

from pagesense.core.coordinator import CaptureConfig, CaptureCoordinator, CaptureResult, CaptureSnapshot
from pagesense.core.browser_bridge import BrowserBridge, SeleniumBridge
from pagesense.core.driver_factory import create_driver
from pagesense.core.exceptions import CaptureError, MalformedExtractionError, PageSenseError

__all__ = [
    "CaptureConfig",
    "CaptureCoordinator",
    "CaptureResult",
    "CaptureSnapshot",
    "BrowserBridge",
    "SeleniumBridge",
    "create_driver",
    "CaptureError",
    "MalformedExtractionError",
    "PageSenseError",
]
