"""
Lightweight unit tests for validation helpers and output naming.

These are intentionally small, but they cover the most error-prone bits.
"""

from __future__ import annotations

import sys
from pathlib import Path
import unittest


SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from page_splitter.naming import format_chapter_prefix, page_basename, page_filename  # noqa: E402
from page_splitter.utils import (  # noqa: E402
    ToolExecutionError,
    UserError,
    validate_int_range,
    validate_non_negative_int,
    validate_positive_int,
)


class ChapterPrefixTests(unittest.TestCase):
    def test_empty_and_missing(self) -> None:
        self.assertEqual(format_chapter_prefix(None), "")
        self.assertEqual(format_chapter_prefix(""), "")
        self.assertEqual(format_chapter_prefix("   "), "")

    def test_numeric_is_zero_padded(self) -> None:
        self.assertEqual(format_chapter_prefix("3"), "CH03_")
        self.assertEqual(format_chapter_prefix(" 12 "), "CH12_")
        self.assertEqual(format_chapter_prefix("007"), "CH07_")
        self.assertEqual(format_chapter_prefix("123"), "CH123_")

    def test_text_is_used_verbatim(self) -> None:
        self.assertEqual(format_chapter_prefix("intro"), "intro_")
        self.assertEqual(format_chapter_prefix("3a"), "3a_")
        self.assertEqual(format_chapter_prefix("1_0"), "1_0_")


class PageFilenameTests(unittest.TestCase):
    def test_without_chapter(self) -> None:
        self.assertEqual(page_filename("", 0, "pdf"), "01.pdf")
        self.assertEqual(page_filename("", 9, "png"), "10.png")
        self.assertEqual(page_filename("", 122, ".webp"), "123.webp")

    def test_with_numeric_chapter(self) -> None:
        prefix = format_chapter_prefix("3")
        self.assertEqual(page_filename(prefix, 0, "pdf"), "CH03_F01_raschka.pdf")

    def test_with_text_chapter(self) -> None:
        prefix = format_chapter_prefix("intro")
        self.assertEqual(page_filename(prefix, 0, "pdf"), "intro_F01_raschka.pdf")
        self.assertEqual(page_basename(prefix, 4), "intro_F05_raschka")


class ValidatorTests(unittest.TestCase):
    def test_positive_int(self) -> None:
        self.assertEqual(validate_positive_int(300, "DPI"), 300)
        with self.assertRaises(UserError):
            validate_positive_int(0, "DPI")

    def test_non_negative_int(self) -> None:
        self.assertEqual(validate_non_negative_int(0, "Padding"), 0)
        with self.assertRaises(UserError):
            validate_non_negative_int(-1, "Padding")

    def test_int_range(self) -> None:
        self.assertEqual(validate_int_range(10, 10, 400, "Scale"), 10)
        self.assertEqual(validate_int_range(400, 10, 400, "Scale"), 400)
        with self.assertRaises(UserError):
            validate_int_range(401, 10, 400, "Scale")
        with self.assertRaises(UserError):
            validate_int_range(150, 1, 100, "WEBP quality")


class ToolExecutionErrorTests(unittest.TestCase):
    def test_output_joins_and_trims_streams(self) -> None:
        exc = ToolExecutionError("boom", returncode=1, stdout="  out\n", stderr="err  \n")
        self.assertEqual(exc.output, "out\nerr")

    def test_output_with_only_stderr(self) -> None:
        exc = ToolExecutionError("boom", returncode=99, stdout="", stderr="Syntax Error\n")
        self.assertEqual(exc.output, "Syntax Error")


if __name__ == "__main__":
    unittest.main()
