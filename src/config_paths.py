"""Resolve the model configuration file and run-specific results folders."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, MutableMapping

REPO_ROOT = Path(__file__).resolve().parents[1]

CONFIG_ENV_VAR = "MARKET_SHARE_CONFIG_PATH"
CONFIG_ROOT_KEY = "_config_root"
DEFAULT_RESULTS_DIR = Path("results")


def get_config_path(default: Path | None = None) -> Path:
    """Configuration path; ``MARKET_SHARE_CONFIG_PATH`` wins over ``default``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    if default is not None:
        return default.resolve()
    return (REPO_ROOT / "config.yaml").resolve()


def set_config_root(config: MutableMapping[str, object], root: Path) -> None:
    """Remember the directory relative paths in ``config`` are resolved against."""
    config[CONFIG_ROOT_KEY] = str(root.resolve())


def get_config_root(config: Mapping[str, object], fallback: Path | None = None) -> Path:
    value = config.get(CONFIG_ROOT_KEY) if isinstance(config, Mapping) else None
    if isinstance(value, str):
        return Path(value).expanduser().resolve()
    return (fallback or REPO_ROOT).resolve()


def sanitize_run_directory(value: str | None) -> str | None:
    """Relative run folder name without ``.``/``..`` parts, or ``None`` when empty."""
    if value is None or not value.strip():
        return None
    path = Path(value.strip())
    if path.is_absolute():
        raise ValueError("results.run_directory must be a relative path.")
    parts = [part for part in path.parts if part not in ("", ".", "..")]
    return "/".join(parts) if parts else None


def get_results_run_directory(config: Mapping[str, object] | None) -> str | None:
    if not isinstance(config, Mapping):
        return None
    results_cfg = config.get("results")
    if not isinstance(results_cfg, Mapping) or results_cfg.get("run_directory") is None:
        return None
    return sanitize_run_directory(str(results_cfg["run_directory"]))


def resolve_results_dir(config: Mapping[str, object] | None, *, repo_root: Path | None = None) -> Path:
    """Output folder for a run: ``results.output_dir`` plus the optional run directory."""
    root = repo_root or (get_config_root(config) if isinstance(config, Mapping) else REPO_ROOT)
    results_cfg = config.get("results") if isinstance(config, Mapping) else None
    output_dir = DEFAULT_RESULTS_DIR
    if isinstance(results_cfg, Mapping) and results_cfg.get("output_dir"):
        output_dir = Path(str(results_cfg["output_dir"]))
    base = output_dir if output_dir.is_absolute() else root / output_dir
    run_directory = get_results_run_directory(config)
    if run_directory:
        base = base / run_directory
    return base.resolve()
