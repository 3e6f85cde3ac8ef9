"""
Capture Recorder - JSON records of a capture run.

Writes each capture of a session to disk as it happens, and a summary of
the whole run at the end, so a run can be inspected after the browser is
gone.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING
from datetime import datetime
import json
import logging
import os

if TYPE_CHECKING:
    from pagesense.core.coordinator import CaptureResult

logger = logging.getLogger(__name__)


class CaptureRecorder:
    """
    Records capture results as JSON files.

    Layout::

        <output_dir>/<run_name>/capture_1.json
        <output_dir>/<run_name>/capture_2.json
        <output_dir>/<run_name>/summary.json

    Example:
        >>> recorder = CaptureRecorder()
        >>> recorder.record(coordinator.capture())
        >>> summary_path = recorder.write_summary()
    """

    def __init__(
        self,
        output_dir: str = "./pagesense_reports",
        run_name: Optional[str] = None,
    ):
        """
        Initialize the capture recorder.

        Args:
            output_dir: Directory for run records
            run_name: Optional name for this run, defaults to a timestamp
        """
        self.output_dir = output_dir
        self.run_name = run_name or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.captures: List[Dict[str, Any]] = []
        self.metadata: Dict[str, Any] = {
            "start_time": datetime.now().isoformat(),
            "run_name": self.run_name,
        }

        self.run_dir = os.path.join(output_dir, self.run_name)
        os.makedirs(self.run_dir, exist_ok=True)

    def record(self, result: "CaptureResult") -> str:
        """
        Write one capture to ``capture_<n>.json``.

        Returns:
            Path to the written file
        """
        number = len(self.captures) + 1
        path = os.path.join(self.run_dir, f"capture_{number}.json")

        data = result.snapshot.to_dict()
        data["history_text"] = result.history_text
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        self.captures.append({
            "capture": number,
            "url": result.snapshot.url,
            "title": result.snapshot.title,
            "captured_at": result.snapshot.captured_at.isoformat(),
            "clickable_elements": len(result.snapshot.interactive_element_hashes),
            "new_elements": result.new_elements,
            "path": path,
        })
        logger.debug(f"[CaptureRecorder] Wrote capture {number} to {path}")
        return path

    def write_summary(self) -> str:
        """
        Write ``summary.json`` for the run.

        Returns:
            Path to the summary file
        """
        self.metadata["end_time"] = datetime.now().isoformat()
        self.metadata["total_captures"] = len(self.captures)

        path = os.path.join(self.run_dir, "summary.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"metadata": self.metadata, "captures": self.captures}, f, indent=2)

        logger.info(f"[CaptureRecorder] Run summary written to {path}")
        return path
