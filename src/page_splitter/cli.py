"""
Command-line interface for page-splitter.

This file focuses on parsing arguments, validating them and handing a ready
OutputSpec to the pipeline. The pipeline runs on a worker thread; this
module only prints the progress lines it sends back.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .config import (
    DEFAULT_RUN,
    deep_merge,
    dump_default_run_yaml,
    extract_run_section,
    load_yaml,
)
from .pipeline import OutputSpec, print_messages, run_in_background
from .utils import UserError, ensure_file_exists, normalize_path


EXAMPLES = """Examples:
  python -m page_splitter --pdf "ch03.pdf" --out_dir "out/ch03" --chapter 3
  python -m page_splitter --pdf "book.pdf" --no-split_pdf --png --webp --quality 80 --dpi 300
  python -m page_splitter --pdf "book.pdf" --no-use_poppler --padding 0 --scale 50
  python -m page_splitter --dump-default-config
  python -m page_splitter --pdf "book.pdf" --config "configs/page_splitter.yaml"
"""

RUN_KEYS = set(DEFAULT_RUN.keys())


def _require_bool(value: Any, key: str) -> bool:
    """Require a strict boolean value from config/CLI merge output."""

    if isinstance(value, bool):
        return value
    raise UserError(f"{key} must be true or false.")


def _require_int(value: Any, key: str) -> int:
    """Require a whole number (YAML may hand us floats or strings)."""

    if isinstance(value, bool):
        raise UserError(f"{key} must be a whole number.")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        return int(value.strip())
    raise UserError(f"{key} must be a whole number.")


def _build_effective_config(args: argparse.Namespace) -> tuple[Dict[str, Any], Path | None]:
    """Resolve defaults < YAML config < explicit CLI flags."""

    effective = deep_merge(DEFAULT_RUN, {})
    config_path: Path | None = None
    if hasattr(args, "config"):
        config_path = normalize_path(args.config)
        effective = deep_merge(effective, extract_run_section(load_yaml(config_path)))

    raw_args = vars(args)
    cli_overrides = {key: raw_args[key] for key in RUN_KEYS if key in raw_args}
    return deep_merge(effective, cli_overrides), config_path


def _default_out_dir(pdf_path: Path) -> Path:
    """Put outputs next to the PDF, in <stem>_output."""

    return pdf_path.parent / f"{pdf_path.stem}_output"


def build_output_spec(args: argparse.Namespace, effective: Dict[str, Any]) -> OutputSpec:
    """Turn parsed arguments into a validated OutputSpec."""

    pdf_path = normalize_path(args.pdf)
    out_dir = normalize_path(args.out_dir) if hasattr(args, "out_dir") else _default_out_dir(pdf_path)

    chapter = effective.get("chapter")
    chapter_value: Optional[str] = None
    if chapter is not None:
        chapter_value = str(chapter).strip() or None

    spec = OutputSpec(
        pdf_path=pdf_path,
        out_dir=out_dir,
        split_pdf=_require_bool(effective["split_pdf"], "split_pdf"),
        png=_require_bool(effective["png"], "png"),
        webp=_require_bool(effective["webp"], "webp"),
        dpi=_require_int(effective["dpi"], "dpi"),
        padding=_require_int(effective["padding"], "padding"),
        scale_percent=_require_int(effective["scale"], "scale"),
        quality=_require_int(effective["quality"], "quality"),
        use_poppler=_require_bool(effective["use_poppler"], "use_poppler"),
        chapter=chapter_value,
    )
    spec.validate()
    ensure_file_exists(pdf_path, "PDF")
    return spec


def _verbosity_from_args(args: argparse.Namespace) -> str:
    """Resolve global verbosity mode from top-level flags."""

    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="page-splitter",
        description=(
            "Split a PDF into single-page PDFs and trimmed, padded PNG/WEBP page images."
        ),
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress lines; only errors are shown.",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug-level logs with level prefixes.",
    )

    parser.add_argument("--pdf", help="Input PDF path (required unless --dump-default-config).")
    parser.add_argument(
        "--out_dir",
        default=argparse.SUPPRESS,
        help="Output folder (default: <pdf folder>/<pdf stem>_output).",
    )
    parser.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Optional YAML config with run settings.",
    )
    parser.add_argument(
        "--dump-default-config",
        action="store_true",
        help="Print the default YAML config and exit.",
    )
    parser.add_argument(
        "--dpi", type=int, default=argparse.SUPPRESS, help="Render DPI (default: 200)."
    )
    parser.add_argument(
        "--padding",
        type=int,
        default=argparse.SUPPRESS,
        help="White border in pixels added after trimming (default: 20).",
    )
    parser.add_argument(
        "--scale",
        type=int,
        default=argparse.SUPPRESS,
        help="Final image scale in percent, 10-400 (default: 100).",
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=argparse.SUPPRESS,
        help="WEBP quality 1-100 (default: 90).",
    )
    parser.add_argument(
        "--chapter",
        default=argparse.SUPPRESS,
        help='Chapter label for filenames: "3" -> CH03_F01_raschka, "intro" -> intro_F01_raschka.',
    )
    parser.add_argument(
        "--split_pdf",
        action=argparse.BooleanOptionalAction,
        default=argparse.SUPPRESS,
        help="Write one PDF per page (default: on).",
    )
    parser.add_argument(
        "--png",
        action=argparse.BooleanOptionalAction,
        default=argparse.SUPPRESS,
        help="Write PNG page images (default: on).",
    )
    parser.add_argument(
        "--webp",
        action=argparse.BooleanOptionalAction,
        default=argparse.SUPPRESS,
        help="Write WEBP page images (default: off).",
    )
    parser.add_argument(
        "--use_poppler",
        action=argparse.BooleanOptionalAction,
        default=argparse.SUPPRESS,
        help="Render with pdftocairo/pdftoppm instead of PyMuPDF (default: on).",
    )
    parser.add_argument(
        "--manifest",
        default=argparse.SUPPRESS,
        help="Optional path for a JSON run manifest.",
    )

    return parser


def _command_string(argv: list[str]) -> str:
    """Reconstruct a command string for the manifest."""

    # list2cmdline produces a Windows-friendly command representation.
    return subprocess.list2cmdline(argv)


def _command_argv_for_manifest(argv: list[str] | None) -> list[str]:
    """Choose argv used to record manifest command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if args.dump_default_config:
            print(dump_default_run_yaml())
            return 0

        if not args.pdf:
            raise UserError("--pdf is required unless --dump-default-config is used.")

        effective, _config_path = _build_effective_config(args)
        spec = build_output_spec(args, effective)
        verbosity = _verbosity_from_args(args)
        manifest_value = effective.get("manifest")
        manifest_path = normalize_path(str(manifest_value)) if manifest_value else None

        # Verbose mode prints straight from the recorder (with levels);
        # otherwise we print the progress lines the worker sends back.
        run = run_in_background(
            spec,
            verbosity=verbosity,
            console_stream=sys.stderr if verbosity == "verbose" else None,
            manifest_path=manifest_path,
            command_string=_command_string(_command_argv_for_manifest(argv)),
        )
        if verbosity == "normal":
            print_messages(run, stream=sys.stderr)
        else:
            for _message in run.messages():
                pass
        run.wait()
        return 0
    except UserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
