"""
Extra robustness tests for manifest structure and progress forwarding.
"""

from __future__ import annotations

import io
import json
import sys
from pathlib import Path
from typing import List
import unittest

from helpers_cli import workspace_temp_dir

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from page_splitter.config import (  # noqa: E402
    DEFAULT_RUN,
    deep_merge,
    extract_run_section,
)
from page_splitter.manifest import ManifestRecorder  # noqa: E402
from page_splitter.utils import UserError  # noqa: E402


def _recorder(verbosity: str = "normal", stream=None, on_message=None) -> ManifestRecorder:
    return ManifestRecorder(
        tool_name="page-splitter",
        tool_version="0.0.0",
        command="page-splitter --pdf in.pdf",
        options={},
        inputs={},
        outputs={},
        verbosity=verbosity,
        console_stream=stream,
        on_message=on_message,
    )


class ManifestStructureTests(unittest.TestCase):
    def test_build_manifest_has_expected_shape(self) -> None:
        recorder = _recorder()
        recorder.log("hello")
        recorder.add_action("write_png", "written", page=1, output="out/01.png")

        manifest = recorder.build_manifest({"files_written": 1})
        self.assertEqual(manifest["tool"], "page-splitter")
        self.assertIn("started_at", manifest)
        self.assertIn("ended_at", manifest)
        self.assertEqual(manifest["action_counts"].get("written"), 1)
        self.assertEqual(manifest["actions"][0]["page"], 1)
        self.assertEqual(manifest["logs"][0]["message"], "hello")

    def test_write_manifest_writes_json(self) -> None:
        with workspace_temp_dir("core") as tmpdir:
            out_path = tmpdir / "nested" / "manifest.json"
            recorder = _recorder()
            recorder.add_action("split_page", "written", page=1)
            recorder.write_manifest(out_path, {"files_written": 1})

            loaded = json.loads(out_path.read_text(encoding="utf-8"))
            self.assertEqual(loaded["summary"]["files_written"], 1)
            self.assertEqual(loaded["action_counts"].get("written"), 1)


class ProgressForwardingTests(unittest.TestCase):
    def test_only_user_facing_levels_are_forwarded(self) -> None:
        received: List[str] = []
        recorder = _recorder(on_message=received.append)
        recorder.log("Saved PNG (200 DPI): out/01.png")
        recorder.log("Renderer: pymupdf", level="debug")
        recorder.log("cwebp failed: boom", level="error")
        self.assertEqual(received, ["Saved PNG (200 DPI): out/01.png", "cwebp failed: boom"])
        self.assertEqual(len(recorder.logs), 3)

    def test_no_console_stream_prints_nothing(self) -> None:
        recorder = _recorder(stream=None)
        recorder.log("hello")
        self.assertEqual(len(recorder.logs), 1)


class ManifestVerbosityTests(unittest.TestCase):
    def test_quiet_suppresses_info_but_prints_error(self) -> None:
        stream = io.StringIO()
        recorder = _recorder("quiet", stream)
        recorder.log("hello-info")
        recorder.log("hello-error", level="error")
        output = stream.getvalue()
        self.assertNotIn("hello-info", output)
        self.assertIn("hello-error", output)

    def test_normal_prints_info_but_not_debug(self) -> None:
        stream = io.StringIO()
        recorder = _recorder("normal", stream)
        recorder.log("hello-info")
        recorder.log("hello-debug", level="debug")
        output = stream.getvalue()
        self.assertIn("hello-info", output)
        self.assertNotIn("hello-debug", output)

    def test_verbose_prints_debug_with_level_prefix(self) -> None:
        stream = io.StringIO()
        recorder = _recorder("verbose", stream)
        recorder.log("hello-debug", level="debug")
        self.assertIn("[debug] hello-debug", stream.getvalue())


class RunConfigTests(unittest.TestCase):
    def test_deep_merge_overlay_wins(self) -> None:
        merged = deep_merge(DEFAULT_RUN, {"dpi": 300})
        self.assertEqual(merged["dpi"], 300)
        self.assertEqual(merged["padding"], 20)
        self.assertEqual(DEFAULT_RUN["dpi"], 200)

    def test_wrapper_form_ignores_root_siblings(self) -> None:
        section = extract_run_section({"dpi": 100, "page_splitter": {"dpi": 300}})
        self.assertEqual(section, {"dpi": 300})

    def test_unknown_key_fails(self) -> None:
        with self.assertRaises(UserError):
            extract_run_section({"page_splitter": {"zoom": 2}})


if __name__ == "__main__":
    unittest.main()
