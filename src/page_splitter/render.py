"""
Render PDF pages to Pillow images.

Why this module exists:
- Keeps rendering logic separate from the page pipeline.
- Two renderers are supported: PyMuPDF in-process, or the poppler command
  line tools (pdftocairo / pdftoppm) for output that matches other poppler
  based tooling. The choice is made once per run and passed around as a
  RenderBackend value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from pathlib import Path
import tempfile
from typing import Callable, List, Optional, Tuple
import uuid

import fitz  # PyMuPDF
from PIL import Image

from .tools import find_executable, locate_output, remove_paths, run_tool
from .utils import (
    RenderFailedError,
    RendererUnavailableError,
    ToolExecutionError,
    ToolLaunchError,
)


class RendererKind(str, Enum):
    PYMUPDF = "pymupdf"
    PDFTOCAIRO = "pdftocairo"
    PDFTOPPM = "pdftoppm"


# Probe order when poppler rendering is requested.
POPPLER_TOOLS = (RendererKind.PDFTOCAIRO, RendererKind.PDFTOPPM)
TEMP_PREFIX = "pagesplit_"


@dataclass(frozen=True)
class RenderBackend:
    """A resolved renderer; poppler variants carry their executable."""

    kind: RendererKind
    executable: Optional[Path] = None

    @property
    def is_external(self) -> bool:
        return self.kind is not RendererKind.PYMUPDF

    def describe(self) -> str:
        if self.executable is None:
            return self.kind.value
        return f"{self.kind.value} ({self.executable})"


def resolve_render_backend(
    use_poppler: bool,
    finder: Callable[[str], Optional[Path]] = find_executable,
) -> RenderBackend:
    """Pick the renderer for a run, failing early if poppler is missing."""

    if not use_poppler:
        return RenderBackend(RendererKind.PYMUPDF)

    for kind in POPPLER_TOOLS:
        executable = finder(kind.value)
        if executable is not None:
            return RenderBackend(kind, executable)

    raise RendererUnavailableError(
        "Poppler rendering is enabled but pdftocairo/pdftoppm was not found. "
        "Install poppler (e.g. 'brew install poppler' or 'apt install poppler-utils') "
        "or turn poppler rendering off."
    )


def target_pixel_size(width_pt: float, height_pt: float, dpi: int) -> Tuple[int, int]:
    """Pixel size of a page at `dpi`; PDFs measure pages in 72-per-inch points."""

    # Multiply before dividing; whole-pixel sizes must stay exact.
    return (
        max(1, math.ceil(width_pt * dpi / 72)),
        max(1, math.ceil(height_pt * dpi / 72)),
    )


def render_page_in_process(doc: fitz.Document, page_index: int, dpi: int) -> Optional[Image.Image]:
    """
    Render one page with PyMuPDF onto a white canvas.

    Returns None when the page cannot be loaded; the caller skips it.
    """

    try:
        page = doc.load_page(page_index)
    except (IndexError, ValueError):
        return None

    # page.rect already reflects the page's /Rotate value.
    rect = page.rect
    size = target_pixel_size(rect.width, rect.height, dpi)
    zoom = dpi / 72.0
    pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
    rendered = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)

    canvas = Image.new("RGB", size, (255, 255, 255))
    canvas.paste(rendered, (0, 0))
    return canvas


def _poppler_command(
    kind: RendererKind,
    pdf_path: Path,
    stem: Path,
    page_number: int,
    dpi: int,
) -> Tuple[List[str], List[Path]]:
    """Arguments and expected output names for one poppler invocation."""

    directory = stem.parent
    base = stem.name
    common = ["-png", "-r", str(dpi), "-f", str(page_number), "-l", str(page_number)]

    if kind is RendererKind.PDFTOCAIRO:
        args = [*common, "-singlefile", str(pdf_path), str(stem)]
        candidates = [
            directory / f"{base}.png",
            directory / f"{base}-{page_number}.png",
        ]
    else:
        args = [*common, str(pdf_path), str(stem)]
        candidates = [
            directory / f"{base}-{page_number}.png",
            directory / f"{base}-{page_number:02d}.png",
            directory / f"{base}.png",
        ]
    return args, candidates


def render_page_with_tool(
    backend: RenderBackend,
    pdf_path: Path,
    page_index: int,
    dpi: int,
    temp_dir: Optional[Path] = None,
) -> Image.Image:
    """
    Rasterize one page of the source file with a poppler tool.

    The tool writes a temporary PNG whose exact name depends on the tool and
    its version, so we try the known names, then fall back to a prefix scan.
    Every candidate is deleted afterwards, found or not.
    """

    if backend.executable is None:
        raise RenderFailedError(f"No executable bound for renderer {backend.kind.value}.")

    page_number = page_index + 1
    directory = Path(temp_dir) if temp_dir is not None else Path(tempfile.gettempdir())
    base = f"{TEMP_PREFIX}{uuid.uuid4().hex}"
    stem = directory / base
    args, candidates = _poppler_command(backend.kind, pdf_path, stem, page_number, dpi)

    found: Optional[Path] = None
    try:
        try:
            run_tool(backend.executable, args)
        except ToolLaunchError as exc:
            raise RenderFailedError(f"Poppler could not render page {page_number}: {exc}") from exc
        except ToolExecutionError as exc:
            raise RenderFailedError(
                f"Poppler failed on page {page_number}: {exc.output or exc}"
            ) from exc

        found = locate_output(candidates, directory, base)
        if found is None:
            raise RenderFailedError(
                f"Poppler did not produce an output image for page {page_number}."
            )

        try:
            with Image.open(found) as opened:
                image = opened.copy()
        except OSError as exc:
            raise RenderFailedError(f"Failed to read poppler output {found}: {exc}") from exc
    finally:
        remove_paths([*candidates, *([found] if found is not None else [])])

    return image


def render_page(
    backend: RenderBackend,
    doc: fitz.Document,
    pdf_path: Path,
    page_index: int,
    dpi: int,
    temp_dir: Optional[Path] = None,
) -> Optional[Image.Image]:
    """Render a page with whichever backend was resolved for the run."""

    if backend.is_external:
        return render_page_with_tool(backend, pdf_path, page_index, dpi, temp_dir=temp_dir)
    return render_page_in_process(doc, page_index, dpi)
