"""
Write page images as PNG and WEBP.

Why this module exists:
- PNG is always written with Pillow and carries the render DPI.
- WEBP support depends on how Pillow was built. When its codec is missing we
  fall back to the `cwebp` command line encoder, which needs a PNG as input.
  The choice is probed once per run and passed around as an EncodeBackend.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import os
from pathlib import Path
import tempfile
from typing import Callable, Optional

from PIL import Image, features

from .tools import find_executable, run_tool
from .utils import (
    EncodeFailedError,
    EncoderUnavailableError,
    OutputWriteError,
    ToolExecutionError,
    ToolLaunchError,
)


DEFAULT_QUALITY = 0.9
CWEBP = "cwebp"


class EncoderKind(str, Enum):
    PILLOW = "pillow"
    CWEBP = "cwebp"


@dataclass(frozen=True)
class EncodeBackend:
    """A resolved WEBP encoder; the cwebp variant carries its executable."""

    kind: EncoderKind
    executable: Optional[Path] = None

    def describe(self) -> str:
        if self.executable is None:
            return self.kind.value
        return f"{self.kind.value} ({self.executable})"


def pillow_supports_webp() -> bool:
    return bool(features.check("webp"))


def resolve_encode_backend(
    webp_requested: bool,
    builtin_probe: Callable[[], bool] = pillow_supports_webp,
    finder: Callable[[str], Optional[Path]] = find_executable,
) -> Optional[EncodeBackend]:
    """
    Pick the WEBP encoder for a run.

    Returns None when WEBP output is off; raises when it is on and nothing on
    this machine can produce it.
    """

    if not webp_requested:
        return None
    if builtin_probe():
        return EncodeBackend(EncoderKind.PILLOW)

    executable = finder(CWEBP)
    if executable is not None:
        return EncodeBackend(EncoderKind.CWEBP, executable)

    raise EncoderUnavailableError(
        "WEBP export is not supported by this Pillow build, and `cwebp` is not available. "
        "Install it (e.g. 'brew install webp' or 'apt install webp')."
    )


def normalized_quality(quality: Optional[int]) -> float:
    """Map a 1-100 quality to the 0.0-1.0 range; None means the default."""

    if quality is None:
        return DEFAULT_QUALITY
    clamped = max(1, min(100, int(quality)))
    return clamped / 100.0


def write_png(image: Image.Image, path: Path, dpi: int) -> Path:
    """Write a PNG with the render resolution stored in its pHYs chunk."""

    try:
        image.save(path, format="PNG", dpi=(dpi, dpi))
    except (OSError, ValueError) as exc:
        raise OutputWriteError(f"Failed to write PNG {path}: {exc}") from exc
    return path


def _write_webp_pillow(image: Image.Image, path: Path, quality: Optional[int]) -> None:
    pillow_quality = int(round(normalized_quality(quality) * 100))
    try:
        image.save(path, format="WEBP", quality=pillow_quality)
    except (OSError, ValueError) as exc:
        raise OutputWriteError(f"Failed to write WEBP {path}: {exc}") from exc


def _temporary_png(basename: str, temp_dir: Optional[Path]) -> Path:
    handle, temp_name = tempfile.mkstemp(
        prefix=f"{basename}_",
        suffix=".png",
        dir=str(temp_dir) if temp_dir is not None else None,
    )
    os.close(handle)
    return Path(temp_name)


def _write_webp_cwebp(
    image: Image.Image,
    path: Path,
    executable: Path,
    quality: Optional[int],
    dpi: int,
    png_path: Optional[Path],
    temp_dir: Optional[Path],
) -> None:
    """Encode with cwebp, reusing an already written PNG when there is one."""

    q = max(1, min(100, int(quality))) if quality is not None else int(DEFAULT_QUALITY * 100)
    temp_png: Optional[Path] = None
    try:
        if png_path is None:
            temp_png = _temporary_png(path.stem, temp_dir)
            write_png(image, temp_png, dpi)
            source = temp_png
        else:
            source = png_path
        run_tool(executable, ["-q", str(q), str(source), "-o", str(path)])
    except ToolLaunchError as exc:
        raise EncodeFailedError(f"Failed to launch cwebp: {exc}") from exc
    except ToolExecutionError as exc:
        raise EncodeFailedError(f"cwebp failed: {exc.output or exc}") from exc
    finally:
        if temp_png is not None:
            temp_png.unlink(missing_ok=True)


def write_webp(
    image: Image.Image,
    path: Path,
    backend: EncodeBackend,
    quality: Optional[int],
    dpi: int,
    png_path: Optional[Path] = None,
    temp_dir: Optional[Path] = None,
) -> Path:
    """
    Write a WEBP with the resolved encoder.

    `png_path` is the PNG already written for this page, if any; the cwebp
    path encodes from it instead of writing a second copy.
    """

    if backend.kind is EncoderKind.PILLOW:
        _write_webp_pillow(image, path, quality)
    else:
        if backend.executable is None:
            raise EncoderUnavailableError("No cwebp executable bound for WEBP export.")
        _write_webp_cwebp(image, path, backend.executable, quality, dpi, png_path, temp_dir)
    return path
