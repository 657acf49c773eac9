"""
Shared utility helpers.

This module keeps the "sharp edges" (validation and the error types every
stage raises) in one place so the rest of the code can stay focused on
PDF/image work.
"""

from __future__ import annotations

from pathlib import Path


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""


class InvalidDocumentError(UserError):
    """The source file could not be opened as a PDF."""


class RendererUnavailableError(UserError):
    """External rendering was requested but no poppler tool was found."""


class RenderFailedError(UserError):
    """A page could not be rasterized by the external renderer."""


class EncoderUnavailableError(UserError):
    """WEBP output was requested but neither Pillow nor cwebp can write it."""


class EncodeFailedError(UserError):
    """The external WEBP encoder failed."""


class OutputWriteError(UserError):
    """An output file or the output directory could not be written."""


class ToolLaunchError(UserError):
    """An external executable could not be started."""


class ToolExecutionError(UserError):
    """An external executable exited with a non-zero status."""

    def __init__(self, message: str, returncode: int, stdout: str, stderr: str) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def output(self) -> str:
        """Both captured streams, joined and trimmed."""

        return "\n".join([self.stdout, self.stderr]).strip()


def normalize_path(value: str) -> Path:
    """
    Convert user input to a Path.

    We do not resolve() here because we want to preserve relative paths in
    manifests and error messages.
    """

    return Path(value).expanduser()


def ensure_file_exists(path: Path, label: str) -> Path:
    """Validate that a path exists and is a file."""

    if not path.exists():
        raise UserError(f"{label} not found: {path}")
    if not path.is_file():
        raise UserError(f"{label} is not a file: {path}")
    return path


def ensure_dir(path: Path) -> None:
    """Create a directory (and its parents) if needed."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputWriteError(f"Failed to create output directory {path}: {exc}") from exc


def ensure_dir_path(path: Path, label: str) -> None:
    """Ensure a path is either a directory or does not exist yet."""

    if path.exists() and not path.is_dir():
        raise UserError(f"{label} is not a directory: {path}")


def validate_positive_int(value: int, label: str) -> int:
    """Common validation for options like --dpi."""

    if value <= 0:
        raise UserError(f"{label} must be greater than 0.")
    return value


def validate_non_negative_int(value: int, label: str) -> int:
    """Validation for options like --padding where zero means "off"."""

    if value < 0:
        raise UserError(f"{label} must be 0 or greater.")
    return value


def validate_int_range(value: int, low: int, high: int, label: str) -> int:
    """Ensure an integer option lies in the closed range [low, high]."""

    if not low <= value <= high:
        raise UserError(f"{label} must be between {low} and {high}.")
    return value
