"""
Configuration helpers for YAML-backed run options.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

try:
    import yaml
except ModuleNotFoundError:  # pragma: no cover - dependency availability
    yaml = None  # type: ignore[assignment]

from .utils import UserError, ensure_file_exists


CONFIG_SECTION = "page_splitter"

# Run defaults; YAML and CLI flags override them.
DEFAULT_RUN: dict[str, Any] = {
    "dpi": 200,
    "padding": 20,
    "scale": 100,
    "quality": 90,
    "use_poppler": True,
    "chapter": None,
    "split_pdf": True,
    "png": True,
    "webp": False,
    "manifest": None,
}


def _require_yaml() -> Any:
    """Return yaml module or raise a user-facing install hint."""

    if yaml is None:
        raise UserError(
            "YAML support requires PyYAML. Install dependencies with "
            "'pip install -e .' or install 'PyYAML'."
        )
    return yaml


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    ensure_file_exists(path, "Config file")
    yaml_mod = _require_yaml()
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml_mod.safe_load(handle)
    except yaml_mod.YAMLError as exc:
        raise UserError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise UserError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise UserError(f"Config {path} must contain a YAML mapping/object at top level.")
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge dictionaries where overlay values win.
    """

    merged = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """
    Validate dictionary keys and fail fast on unknown entries.
    """

    unknown = sorted(key for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise UserError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def extract_run_section(loaded: dict[str, Any]) -> dict[str, Any]:
    """Support either root config keys or a page_splitter wrapper."""

    if CONFIG_SECTION in loaded:
        section = loaded[CONFIG_SECTION]
        if not isinstance(section, dict):
            raise UserError(f"config.{CONFIG_SECTION} must be a mapping/object.")
        validate_keys(section, set(DEFAULT_RUN), f"config.{CONFIG_SECTION}")
        return section

    validate_keys(loaded, set(DEFAULT_RUN), "config")
    return loaded


def dump_default_run_yaml() -> str:
    """Serialize wrapped run defaults as YAML."""

    yaml_mod = _require_yaml()
    return yaml_mod.safe_dump({CONFIG_SECTION: DEFAULT_RUN}, sort_keys=False).rstrip()
