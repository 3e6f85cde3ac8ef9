"""Reporters - Rolling capture history and JSON run records."""

from pagesense.reporters.history_store import HistoryRecord, HistorySize, RollingHistoryStore
from pagesense.reporters.capture_recorder import CaptureRecorder

__all__ = ["HistoryRecord", "HistorySize", "RollingHistoryStore", "CaptureRecorder"]
