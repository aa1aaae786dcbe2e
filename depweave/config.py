"""Configuration for the cycle detector and the lazy loader.

Every heuristic threshold lives here rather than in the algorithms, so the
values can be tuned from a ``depweave.yaml`` file or the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "depweave.yaml"

DEFAULT_SKIP_DIRS = [
    "node_modules", ".git", "__pycache__", "build", "dist", ".next",
    ".venv", "venv", "env", ".eggs", "*.egg-info", "coverage",
]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, value)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, value)
        return default


class _DictMixin:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None):
        """Create config from a dictionary, ignoring unknown keys."""
        valid_fields = {f for f in cls.__dataclass_fields__}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in (data or {}).items() if k in valid_fields}
        return cls(**filtered)


@dataclass
class DetectorConfig(_DictMixin):
    """Thresholds used by the cycle detector."""
    # A reference within this many lines (and at column 0) counts as top level
    top_level_lines: int = field(
        default_factory=lambda: _env_int("DEPWEAVE_TOP_LEVEL_LINES", 20)
    )
    high_reference_threshold: int = 3
    max_interface_symbols: int = 5
    inversion_count_delta: int = 2
    many_high_threshold: int = 3
    max_cycles: int = 1000
    categories: list[str] = field(default_factory=lambda: [
        "core", "specialists", "departments", "commands",
        "integrations", "security", "utils", "config",
    ])
    skip_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_SKIP_DIRS))
    report_file: str = "circular-dependencies-report.json"


@dataclass
class LoaderConfig(_DictMixin):
    """Settings for the lazy loader."""
    size_threshold_bytes: int = field(
        default_factory=lambda: _env_int("DEPWEAVE_SIZE_THRESHOLD", 50 * 1024)
    )
    lazy_categories: list[str] = field(
        default_factory=lambda: ["specialists", "departments", "integrations"]
    )
    default_timeout: float = field(
        default_factory=lambda: _env_float("DEPWEAVE_LOAD_TIMEOUT", 30.0)
    )
    warmup_batch_size: int = 5
    warmup_pause: float = 0.1


@dataclass
class DepweaveConfig:
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)

    def to_dict(self) -> dict[str, Any]:
        return {"detector": self.detector.to_dict(), "loader": self.loader.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DepweaveConfig:
        data = data or {}
        return cls(
            detector=DetectorConfig.from_dict(data.get("detector")),
            loader=LoaderConfig.from_dict(data.get("loader")),
        )

    def save(self, path: Path | str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def load_config(path: Path | str | None = None) -> DepweaveConfig:
    """Load configuration from a YAML file.

    With no path, ``depweave.yaml`` in the working directory is used when it
    exists. A missing file yields the defaults.
    """
    config_path = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILE
    if not config_path.is_file():
        if path:
            logger.warning("Config file %s not found, using defaults", config_path)
        return DepweaveConfig()

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level")
    return DepweaveConfig.from_dict(data)
