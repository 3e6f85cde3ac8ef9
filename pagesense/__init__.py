"""
PageSense - DOM Snapshot Processing and Change Detection

Turns live page structure into a stable, addressable element tree and
tracks what appears and disappears across captures of a browsing session.
"""

__version__ = "0.1.0"

from pagesense.core.coordinator import CaptureConfig, CaptureCoordinator

__all__ = [
    "CaptureConfig",
    "CaptureCoordinator",
    "__version__",
]
