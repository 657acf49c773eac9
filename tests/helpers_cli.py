"""
Shared helpers for running the page-splitter CLI and building test PDFs.
"""

from __future__ import annotations

import io
import shutil
import sys
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from pathlib import Path
from typing import Iterator, Sequence, Tuple
from uuid import uuid4


SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def _normalize_exit_code(value: object) -> int:
    """Normalize return values/SystemExit payloads into process-style int codes."""

    if value is None:
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1


def run_page_splitter_cli(argv: list[str]) -> tuple[int, str, str]:
    """
    Run the page-splitter CLI in-process with isolated argv and captured stdio.

    Returns: (exit_code, stdout_text, stderr_text)
    """

    from page_splitter import cli as cli_mod

    original_argv = list(sys.argv)
    stdout_stream = io.StringIO()
    stderr_stream = io.StringIO()
    exit_code = 0

    try:
        sys.argv = ["page-splitter", *argv]
        with redirect_stdout(stdout_stream), redirect_stderr(stderr_stream):
            try:
                result = cli_mod.main(argv)
            except SystemExit as exc:
                exit_code = _normalize_exit_code(exc.code)
            else:
                exit_code = _normalize_exit_code(result)
    finally:
        sys.argv = original_argv

    return exit_code, stdout_stream.getvalue(), stderr_stream.getvalue()


@contextmanager
def workspace_temp_dir(label: str = "test") -> Iterator[Path]:
    """A throwaway folder under the repo so tests never touch the user's temp."""

    root = Path(__file__).resolve().parents[1] / ".tmp_tests"
    root.mkdir(parents=True, exist_ok=True)
    tmp = root / f"{label}_{uuid4().hex}"
    tmp.mkdir(parents=True, exist_ok=False)
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def make_pdf(
    path: Path,
    page_count: int = 3,
    size: Tuple[float, float] = (144, 72),
    box: Sequence[float] = (20, 10, 60, 40),
) -> Path:
    """Write a small PDF where every page has one filled black box."""

    import fitz  # PyMuPDF

    with fitz.open() as doc:
        for _ in range(page_count):
            page = doc.new_page(width=size[0], height=size[1])
            page.draw_rect(fitz.Rect(*box), color=(0, 0, 0), fill=(0, 0, 0))
        doc.save(path)
    return path
