"""
Output filenames.

Every artifact of a page shares one base name so a page's PDF, PNG and WEBP
sort next to each other:

- no chapter:      01.pdf, 01.png, 02.pdf, ...
- numeric chapter: CH03_F01_raschka.pdf, CH03_F01_raschka.png, ...
- text chapter:    intro_F01_raschka.pdf, ...
"""

from __future__ import annotations

import re
from typing import Optional

_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")


def format_chapter_prefix(chapter: Optional[str]) -> str:
    """Turn a chapter label into a filename prefix ("" when there is none)."""

    if chapter is None:
        return ""
    label = chapter.strip()
    if not label:
        return ""
    if _INTEGER_RE.match(label):
        return f"CH{int(label):02d}_"
    return f"{label}_"


def page_basename(prefix: str, page_index: int) -> str:
    """Base name (no extension) for a zero-based page index."""

    page = f"{page_index + 1:02d}"
    if not prefix:
        return page
    return f"{prefix}F{page}_raschka"


def page_filename(prefix: str, page_index: int, extension: str) -> str:
    return f"{page_basename(prefix, page_index)}.{extension.lstrip('.')}"
