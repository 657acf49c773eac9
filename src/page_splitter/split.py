"""
Split a PDF into one PDF per page.

Why this module exists:
- Isolates the document-per-page pass from the image pass.
- Any failed write stops the run; there is no partial-success mode.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

import fitz  # PyMuPDF

from .manifest import ManifestRecorder
from .naming import page_filename
from .utils import OutputWriteError


def extract_page(doc: fitz.Document, page_index: int) -> fitz.Document:
    """Return a new in-memory document holding only one page."""

    single = fitz.open()
    single.insert_pdf(doc, from_page=page_index, to_page=page_index)
    return single


def split_pages(
    doc: fitz.Document,
    out_dir: Path,
    prefix: str,
    recorder: ManifestRecorder,
) -> List[Path]:
    """Write every page of `doc` as its own PDF, in page order."""

    written: List[Path] = []
    total_pages = doc.page_count

    for page_index in range(total_pages):
        output_path = out_dir / page_filename(prefix, page_index, "pdf")
        try:
            with extract_page(doc, page_index) as single:
                single.save(output_path)
        except Exception as exc:  # PyMuPDF raises plain RuntimeError/ValueError subclasses
            raise OutputWriteError(f"Failed to write PDF: {output_path} ({exc})") from exc

        written.append(output_path)
        recorder.log(f"Saved page PDF: {output_path}")
        recorder.add_action(
            action="split_page",
            status="written",
            page=page_index + 1,
            output=str(output_path),
        )

    recorder.log(f"Split into {total_pages} single-page PDFs.")
    return written
