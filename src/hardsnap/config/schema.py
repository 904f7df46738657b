"""Configuration schema — dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

OutputFormat = Literal["terminal", "json", "yaml"]
DetectMode = Literal["metadata", "checksum"]
LogLevel = Literal["debug", "info", "warning", "error"]

OUTPUT_FORMATS = ("terminal", "json", "yaml")
DETECT_MODES = ("metadata", "checksum")
LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class BackupConfig:
    workers: int = 4
    queue_size: int = 64  # max entries in flight between walker and workers
    chunk_size_kb: int = 1024
    deadline_seconds: Optional[float] = None
    sanitize_names: bool = False  # rewrite names that Windows filesystems reject


@dataclass
class DetectConfig:
    mode: DetectMode = "metadata"
    hash_algorithm: str = "sha256"  # only used when mode = "checksum"


@dataclass
class IgnoreConfig:
    patterns: List[str] = field(default_factory=list)
    file: str = ".hardsnapignore"  # relative to the source root


@dataclass
class ManifestConfig:
    enabled: bool = False
    name: str = ".hardsnap-manifest.json"


@dataclass
class OutputConfig:
    format: OutputFormat = "terminal"
    show_summary: bool = True
    show_failures: bool = True


@dataclass
class LoggingConfig:
    level: LogLevel = "warning"
    file: Optional[str] = None


@dataclass
class HardsnapConfig:
    version: str = "1.0"
    backup: BackupConfig = field(default_factory=BackupConfig)
    detect: DetectConfig = field(default_factory=DetectConfig)
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
