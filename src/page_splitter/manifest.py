"""
Run log for page-splitter.

Every line a run produces goes through ManifestRecorder.log(). Step and
summary lines (info and up) double as the progress feed handed to the
caller; debug lines only reach the console in verbose mode. With a manifest
path, the collected lines and per-page actions are saved as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
from typing import Any, Callable, Dict, List, Optional, TextIO

from .utils import ensure_dir


PROGRESS_LEVELS = {"info", "warning", "error"}


def _iso_now() -> str:
    """Return an ISO-8601 timestamp in UTC."""

    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManifestRecorder:
    """
    Collect logs and actions, then optionally write a manifest JSON file.

    `on_message` receives progress lines. It may run on a worker thread, so
    it should only hand the message off (e.g. queue.put).
    """

    tool_name: str
    tool_version: str
    command: str
    options: Dict[str, Any]
    inputs: Dict[str, Any]
    outputs: Dict[str, Any]
    verbosity: str = "normal"
    console_stream: Optional[TextIO] = field(default_factory=lambda: sys.stderr)
    on_message: Optional[Callable[[str], None]] = None
    started_at: str = field(default_factory=_iso_now)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)

    def log(self, message: str, level: str = "info") -> None:
        """Record a log message, print it, and pass progress lines on."""

        entry = {"timestamp": _iso_now(), "level": level, "message": message}
        self.logs.append(entry)

        if self.console_stream is not None:
            should_print = False
            if self.verbosity == "quiet":
                should_print = level == "error"
            elif self.verbosity == "verbose":
                should_print = True
            else:
                should_print = level in PROGRESS_LEVELS

            if should_print:
                rendered = f"[{level}] {message}" if self.verbosity == "verbose" else message
                print(rendered, file=self.console_stream)

        if self.on_message is not None and level in PROGRESS_LEVELS:
            self.on_message(message)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """
        Add an action record.

        Example action types: split_page, write_png, write_webp, render_page.
        """

        entry: Dict[str, Any] = {
            "timestamp": _iso_now(),
            "action": action,
            "status": status,
        }
        entry.update(details)
        self.actions.append(entry)

    def _summarize_actions(self) -> Dict[str, int]:
        """Count actions by status (written, skipped, error)."""

        counts: Dict[str, int] = {}
        for action in self.actions:
            status = action.get("status", "unknown")
            counts[status] = counts.get(status, 0) + 1
        return counts

    def build_manifest(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        """Assemble the final manifest structure."""

        return {
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _iso_now(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "action_counts": self._summarize_actions(),
            "actions": self.actions,
            "logs": self.logs,
        }

    def write_manifest(self, path: Path, summary: Dict[str, Any]) -> None:
        """Write the manifest JSON."""

        ensure_dir(path.parent)
        manifest = self.build_manifest(summary)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(manifest, handle, indent=2, ensure_ascii=True)
