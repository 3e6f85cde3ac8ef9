import json
import os

from pagesense.core.coordinator import CaptureCoordinator
from pagesense.reporters.capture_recorder import CaptureRecorder


def test_record_writes_capture_files(tmp_path, raw_result, make_bridge):
    coordinator = CaptureCoordinator(make_bridge(raw_result))
    recorder = CaptureRecorder(output_dir=str(tmp_path), run_name="run1")

    first = recorder.record(coordinator.capture())
    second = recorder.record(coordinator.capture())

    assert first == os.path.join(str(tmp_path), "run1", "capture_1.json")
    assert second.endswith("capture_2.json")
    with open(first, encoding="utf-8") as f:
        data = json.load(f)
    assert data["url"] == "https://example.com/"
    assert data["history_text"].startswith("=== Recently Appeared Elements ===")
    assert data["dom_tree"]["tag"] == "body"


def test_write_summary(tmp_path, make_buttons_result, make_bridge):
    bridge = make_bridge(make_buttons_result(["a"]))
    coordinator = CaptureCoordinator(bridge)
    recorder = CaptureRecorder(output_dir=str(tmp_path), run_name="run2")

    recorder.record(coordinator.capture())
    bridge.evaluate_dom_tree.return_value = make_buttons_result(["a", "b"])
    recorder.record(coordinator.capture())
    path = recorder.write_summary()

    with open(path, encoding="utf-8") as f:
        summary = json.load(f)
    assert summary["metadata"]["run_name"] == "run2"
    assert summary["metadata"]["total_captures"] == 2
    assert [c["clickable_elements"] for c in summary["captures"]] == [1, 2]
    assert [c["new_elements"] for c in summary["captures"]] == [1, 1]


def test_default_run_name_is_timestamp(tmp_path):
    recorder = CaptureRecorder(output_dir=str(tmp_path))
    assert os.path.isdir(recorder.run_dir)
    assert len(recorder.run_name) == len("20260101_120000")
