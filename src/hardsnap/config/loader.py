"""Load and merge configuration from .hardsnap.toml and env vars."""

from __future__ import annotations

import hashlib
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import-not-found]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

from hardsnap.config.schema import (
    DETECT_MODES,
    LOG_LEVELS,
    OUTPUT_FORMATS,
    BackupConfig,
    DetectConfig,
    HardsnapConfig,
    IgnoreConfig,
    LoggingConfig,
    ManifestConfig,
    OutputConfig,
)

CONFIG_FILENAME = ".hardsnap.toml"


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(source_root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = source_root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _merge_env_overrides(cfg: HardsnapConfig) -> None:
    """Apply HARDSNAP_* environment variable overrides."""
    if val := os.environ.get("HARDSNAP_WORKERS"):
        try:
            cfg.backup.workers = int(val)
        except ValueError:
            pass
    if val := os.environ.get("HARDSNAP_DEADLINE"):
        try:
            cfg.backup.deadline_seconds = float(val)
        except ValueError:
            pass
    if val := os.environ.get("HARDSNAP_FORMAT"):
        if val in OUTPUT_FORMATS:
            cfg.output.format = val  # type: ignore[assignment]
    if val := os.environ.get("HARDSNAP_LOG_LEVEL"):
        if val.lower() in LOG_LEVELS:
            cfg.logging.level = val.lower()  # type: ignore[assignment]
    if val := os.environ.get("HARDSNAP_IGNORE"):
        sep = ":" if os.name != "nt" else ";"
        cfg.ignore.patterns.extend(p.strip() for p in val.split(sep) if p.strip())


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    import dataclasses

    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def validate_config(cfg: HardsnapConfig) -> None:
    """Raise ConfigError for values the engine cannot work with."""
    if not isinstance(cfg.backup.workers, int) or cfg.backup.workers < 1:
        raise ConfigError(f"backup.workers must be a positive integer, got {cfg.backup.workers!r}")
    if not isinstance(cfg.backup.queue_size, int) or cfg.backup.queue_size < 1:
        raise ConfigError(f"backup.queue_size must be a positive integer, got {cfg.backup.queue_size!r}")
    if not isinstance(cfg.backup.chunk_size_kb, int) or cfg.backup.chunk_size_kb < 1:
        raise ConfigError(f"backup.chunk_size_kb must be a positive integer, got {cfg.backup.chunk_size_kb!r}")
    deadline = cfg.backup.deadline_seconds
    if deadline is not None and (not isinstance(deadline, (int, float)) or deadline <= 0):
        raise ConfigError(f"backup.deadline_seconds must be positive, got {deadline!r}")
    if cfg.detect.mode not in DETECT_MODES:
        raise ConfigError(f"detect.mode must be one of {', '.join(DETECT_MODES)}")
    if cfg.detect.hash_algorithm not in hashlib.algorithms_available:
        raise ConfigError(f"Unknown hash algorithm: {cfg.detect.hash_algorithm}")
    if cfg.output.format not in OUTPUT_FORMATS:
        raise ConfigError(f"output.format must be one of {', '.join(OUTPUT_FORMATS)}")
    if cfg.logging.level not in LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")
    if not cfg.manifest.name or "/" in cfg.manifest.name:
        raise ConfigError("manifest.name must be a plain file name")


def load_config(
    source_root: Path,
    config_override: Optional[str] = None,
) -> HardsnapConfig:
    """Load, validate, and return a HardsnapConfig."""
    config_path = find_config_file(source_root, config_override)

    if config_path is None:
        cfg = HardsnapConfig()
    else:
        raw = _parse_toml(config_path)
        cfg = HardsnapConfig(
            version=raw.get("version", "1.0"),
            backup=_build_section(raw, BackupConfig, "backup"),
            detect=_build_section(raw, DetectConfig, "detect"),
            ignore=_build_section(raw, IgnoreConfig, "ignore"),
            manifest=_build_section(raw, ManifestConfig, "manifest"),
            output=_build_section(raw, OutputConfig, "output"),
            logging=_build_section(raw, LoggingConfig, "logging"),
        )

    _merge_env_overrides(cfg)
    validate_config(cfg)
    return cfg
