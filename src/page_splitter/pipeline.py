"""
Per-page processing pipeline.

Why this module exists:
- It is the one place that knows the order of work for a run:
  1. make sure the output folder exists and the PDF opens,
  2. optionally write one PDF per page,
  3. optionally render every page, post-process it and write PNG/WEBP.
- Renderer and WEBP encoder are resolved once, before the first page, so a
  missing tool fails the run before anything is rendered.
- Progress is reported as plain text lines through a one-way callback. A
  caller with its own main loop can use run_in_background() and read the
  lines from a queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import queue
import sys
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, TextIO

import fitz  # PyMuPDF

from . import __version__
from .encode import EncodeBackend, EncoderKind, resolve_encode_backend, write_png, write_webp
from .geometry import postprocess
from .manifest import ManifestRecorder
from .naming import format_chapter_prefix, page_basename
from .render import RenderBackend, render_page, resolve_render_backend
from .split import split_pages
from .utils import (
    InvalidDocumentError,
    UserError,
    ensure_dir,
    ensure_dir_path,
    validate_int_range,
    validate_non_negative_int,
    validate_positive_int,
)


MIN_SCALE_PERCENT = 10
MAX_SCALE_PERCENT = 400


class PipelineState(str, Enum):
    NOT_STARTED = "not_started"
    SPLITTING_DOCUMENTS = "splitting_documents"
    RENDERING_IMAGES = "rendering_images"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class OutputSpec:
    """Everything a run needs; build it once and call validate() before running."""

    pdf_path: Path
    out_dir: Path
    split_pdf: bool = True
    png: bool = True
    webp: bool = False
    dpi: int = 200
    padding: int = 20
    scale_percent: int = 100
    quality: int = 90
    use_poppler: bool = True
    chapter: Optional[str] = None

    @property
    def wants_images(self) -> bool:
        return self.png or self.webp

    @property
    def scale_factor(self) -> float:
        return max(0.1, self.scale_percent / 100.0)

    def validate(self) -> "OutputSpec":
        """
        Check the ranges a caller must guarantee before starting a run.

        The pipeline itself trusts these values.
        """

        if self.pdf_path.suffix.lower() != ".pdf":
            raise UserError("Please choose a PDF file.")
        if not (self.split_pdf or self.png or self.webp):
            raise UserError("Choose at least one output type.")
        validate_positive_int(self.dpi, "DPI")
        validate_non_negative_int(self.padding, "Padding")
        validate_int_range(self.scale_percent, MIN_SCALE_PERCENT, MAX_SCALE_PERCENT, "Scale")
        if self.webp:
            validate_int_range(self.quality, 1, 100, "WEBP quality")
        ensure_dir_path(self.out_dir, "Output directory")
        return self

    def as_options(self) -> Dict[str, Any]:
        """JSON-friendly view for the manifest."""

        return {
            "pdf_path": str(self.pdf_path),
            "out_dir": str(self.out_dir),
            "split_pdf": self.split_pdf,
            "png": self.png,
            "webp": self.webp,
            "dpi": self.dpi,
            "padding": self.padding,
            "scale_percent": self.scale_percent,
            "quality": self.quality,
            "use_poppler": self.use_poppler,
            "chapter": self.chapter,
        }


class PagePipeline:
    """One run over one PDF. Not reusable: create a new pipeline per run."""

    def __init__(
        self,
        spec: OutputSpec,
        on_message: Optional[Callable[[str], None]] = None,
        verbosity: str = "normal",
        console_stream: Optional[TextIO] = None,
        manifest_path: Optional[Path] = None,
        command_string: str = "",
        temp_dir: Optional[Path] = None,
        resolve_renderer: Optional[Callable[[bool], RenderBackend]] = None,
        resolve_encoder: Optional[Callable[[bool], Optional[EncodeBackend]]] = None,
    ) -> None:
        self.spec = spec
        self.manifest_path = manifest_path
        self.temp_dir = temp_dir
        self.state = PipelineState.NOT_STARTED
        self.written: List[Path] = []
        self._resolve_renderer = resolve_renderer or resolve_render_backend
        self._resolve_encoder = resolve_encoder or resolve_encode_backend
        self.recorder = ManifestRecorder(
            tool_name="page-splitter",
            tool_version=__version__,
            command=command_string,
            options=spec.as_options(),
            inputs={"pdf": str(spec.pdf_path)},
            outputs={"out_dir": str(spec.out_dir)},
            verbosity=verbosity,
            console_stream=console_stream,
            on_message=on_message,
        )

    def _enter(self, state: PipelineState) -> None:
        self.recorder.log(f"State: {self.state.value} -> {state.value}", level="debug")
        self.state = state

    def _open_document(self) -> fitz.Document:
        pdf_path = self.spec.pdf_path
        try:
            doc = fitz.open(pdf_path, filetype="pdf")
        except Exception as exc:  # PyMuPDF raises FileNotFoundError, FileDataError, RuntimeError
            raise InvalidDocumentError(f"Could not open the PDF file: {pdf_path} ({exc})") from exc
        return doc

    def run(self) -> List[Path]:
        """Run every requested phase; returns the paths written, in order."""

        spec = self.spec
        recorder = self.recorder
        error_message: Optional[str] = None
        summary: Dict[str, object] = {"page_count": 0, "files_written": 0}

        if self.state is not PipelineState.NOT_STARTED:
            raise UserError("A pipeline can only run once.")

        try:
            with self._open_document() as doc:
                ensure_dir(spec.out_dir)
                summary["page_count"] = doc.page_count
                recorder.inputs["page_count"] = doc.page_count
                prefix = format_chapter_prefix(spec.chapter)
                recorder.outputs["prefix"] = prefix
                recorder.log(
                    f"Processing {doc.page_count} page(s) from {spec.pdf_path}.", level="debug"
                )

                if spec.split_pdf:
                    self._enter(PipelineState.SPLITTING_DOCUMENTS)
                    self.written.extend(split_pages(doc, spec.out_dir, prefix, recorder))

                if spec.wants_images:
                    self._enter(PipelineState.RENDERING_IMAGES)
                    self._render_images(doc, prefix)

            self._enter(PipelineState.DONE)
            return list(self.written)
        except Exception as exc:
            self.state = PipelineState.FAILED
            if isinstance(exc, UserError):
                error_message = str(exc)
            else:
                error_message = f"Failed to process PDF {spec.pdf_path}: {exc}"
            recorder.log(error_message, level="error")
            recorder.add_action(action="run", status="error", error=error_message)
            if isinstance(exc, UserError):
                raise
            raise UserError(error_message) from exc
        finally:
            summary["files_written"] = len(self.written)
            summary["state"] = self.state.value
            summary["status"] = "error" if error_message else "ok"
            if error_message is not None:
                summary["error"] = error_message
            if self.manifest_path is not None:
                recorder.write_manifest(self.manifest_path, summary)

    def _render_images(self, doc: fitz.Document, prefix: str) -> None:
        spec = self.spec
        recorder = self.recorder

        renderer = self._resolve_renderer(spec.use_poppler)
        encoder = self._resolve_encoder(spec.webp)
        recorder.outputs["renderer"] = renderer.kind.value
        recorder.log(f"Renderer: {renderer.describe()}", level="debug")
        if encoder is not None:
            recorder.outputs["webp_encoder"] = encoder.kind.value
            recorder.log(f"WEBP encoder: {encoder.describe()}", level="debug")

        for page_index in range(doc.page_count):
            rendered = render_page(
                renderer, doc, spec.pdf_path, page_index, spec.dpi, temp_dir=self.temp_dir
            )
            if rendered is None:
                recorder.log(f"Page {page_index + 1} could not be loaded; skipped.", level="debug")
                recorder.add_action(action="render_page", status="skipped", page=page_index + 1)
                continue

            image = postprocess(rendered, spec.padding, spec.scale_factor)
            basename = page_basename(prefix, page_index)

            png_path: Optional[Path] = None
            if spec.png:
                png_path = write_png(image, spec.out_dir / f"{basename}.png", spec.dpi)
                self.written.append(png_path)
                recorder.log(f"Saved PNG ({spec.dpi} DPI): {png_path}")
                recorder.add_action(
                    action="write_png", status="written", page=page_index + 1, output=str(png_path)
                )

            if spec.webp and encoder is not None:
                webp_path = write_webp(
                    image,
                    spec.out_dir / f"{basename}.webp",
                    encoder,
                    spec.quality,
                    spec.dpi,
                    png_path=png_path,
                    temp_dir=self.temp_dir,
                )
                self.written.append(webp_path)
                suffix = " (cwebp)" if encoder.kind is EncoderKind.CWEBP else ""
                recorder.log(f"Saved WEBP{suffix}: {webp_path}")
                recorder.add_action(
                    action="write_webp",
                    status="written",
                    page=page_index + 1,
                    output=str(webp_path),
                    encoder=encoder.kind.value,
                )


def run_pipeline(
    spec: OutputSpec,
    on_message: Optional[Callable[[str], None]] = None,
    **kwargs: Any,
) -> List[Path]:
    """Run one pipeline in the calling thread."""

    return PagePipeline(spec, on_message=on_message, **kwargs).run()


_FINISHED = object()


class BackgroundRun:
    """
    A pipeline running on a worker thread.

    Progress lines arrive on `queue`; iterate messages() from the caller's
    thread, then call wait() to get the written paths or the run's error.
    """

    def __init__(self, spec: OutputSpec, **kwargs: Any) -> None:
        self.queue: "queue.Queue[object]" = queue.Queue()
        self.result: List[Path] = []
        self.error: Optional[BaseException] = None
        self._pipeline = PagePipeline(spec, on_message=self.queue.put, **kwargs)
        self._thread = threading.Thread(target=self._work, name="page-splitter", daemon=True)

    @property
    def state(self) -> PipelineState:
        return self._pipeline.state

    def start(self) -> "BackgroundRun":
        self._thread.start()
        return self

    def _work(self) -> None:
        try:
            self.result = self._pipeline.run()
        except BaseException as exc:  # handed back to the caller in wait()
            self.error = exc
        finally:
            self.queue.put(_FINISHED)

    def messages(self) -> Iterator[str]:
        """Yield progress lines until the run ends."""

        while True:
            item = self.queue.get()
            if item is _FINISHED:
                return
            yield str(item)

    def wait(self) -> List[Path]:
        self._thread.join()
        if self.error is not None:
            raise self.error
        return self.result


def run_in_background(spec: OutputSpec, **kwargs: Any) -> BackgroundRun:
    """Start a pipeline off the caller's thread."""

    return BackgroundRun(spec, **kwargs).start()


def print_messages(run: BackgroundRun, stream: TextIO = sys.stderr) -> None:
    """Drain a background run's progress lines to a text stream."""

    for message in run.messages():
        print(message, file=stream)
