"""
External tool helpers (poppler and cwebp).

Why this module exists:
- Both the poppler renderer and the cwebp encoder need the same steps:
  find the executable, run it to completion, turn failures into clear errors,
  and find/clean up the files it wrote.
- The filename guessing for tool output is fragile, so it lives in one place.
"""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
from typing import Iterable, List, Optional, Sequence

from .utils import ToolExecutionError, ToolLaunchError


# Common install locations that GUI launchers often leave off PATH.
FALLBACK_DIRS = ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin")


def _search_dirs(search_path: Optional[str], fallback_dirs: Iterable[str]) -> List[str]:
    """PATH entries in order, then fallbacks, without duplicates."""

    if search_path is None:
        search_path = os.environ.get("PATH", "")
    entries = [entry for entry in search_path.split(os.pathsep) if entry]

    dirs: List[str] = []
    seen = set()
    for entry in [*entries, *fallback_dirs]:
        if entry in seen:
            continue
        seen.add(entry)
        dirs.append(entry)
    return dirs


def find_executable(
    name: str,
    search_path: Optional[str] = None,
    fallback_dirs: Iterable[str] = FALLBACK_DIRS,
) -> Optional[Path]:
    """
    Return the first executable regular file called `name`, or None.

    `search_path` defaults to the inherited PATH.
    """

    for entry in _search_dirs(search_path, fallback_dirs):
        candidate = Path(entry) / name
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
    return None


def run_tool(executable: Path, args: Sequence[str]) -> subprocess.CompletedProcess:
    """
    Run an external tool synchronously and capture its output.

    There is no timeout: a hung tool hangs the run. Failures are never
    retried; callers add the page/operation context to the message.
    """

    command = [str(executable), *[str(arg) for arg in args]]
    try:
        proc = subprocess.run(
            command,
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise ToolLaunchError(f"Failed to launch {executable.name}: {reason}") from exc

    if proc.returncode != 0:
        raise ToolExecutionError(
            f"{executable.name} exited with status {proc.returncode}",
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
    return proc


def locate_output(
    candidates: Sequence[Path],
    directory: Path,
    prefix: str,
    suffix: str = ".png",
) -> Optional[Path]:
    """
    Find the file a tool wrote.

    Tries the expected names first, then any file in `directory` whose name
    starts with `prefix` and ends with `suffix`.
    """

    for candidate in candidates:
        if candidate.is_file():
            return candidate

    matches = sorted(
        path
        for path in directory.glob(f"{prefix}*")
        if path.is_file() and path.suffix.lower() == suffix
    )
    return matches[0] if matches else None


def remove_paths(paths: Iterable[Path]) -> None:
    """Delete files, ignoring ones that were never created."""

    for path in paths:
        path.unlink(missing_ok=True)
