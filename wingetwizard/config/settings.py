"""
WingetWizard Configuration Module

Configuration for the package orchestrator: tool location, timeouts,
output limits and data paths.

There is no global instance. Callers load a WizardConfig once and pass it
to each component at construction; `with_updates()` is the only way to
change a value and it returns a new, validated config.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import filelock

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 1000
LOCK_TIMEOUT = 10


def _default_data_dir() -> Path:
    return Path(os.environ.get("WINGETWIZARD_HOME", Path.home() / ".wingetwizard"))


@dataclass(frozen=True)
class WizardConfig:
    """Package orchestrator configuration."""

    winget_path: str = field(default_factory=lambda: os.environ.get("WINGETWIZARD_WINGET", "winget"))
    default_source: str = "winget"
    verbose: bool = False

    # Timeouts (seconds)
    list_timeout_seconds: float = 120
    search_timeout_seconds: float = 60
    lifecycle_timeout_seconds: float = 1800

    # Bounded failure message
    output_tail_chars: int = 4000

    search_limit: int = 50

    data_dir: Path = field(default_factory=_default_data_dir)
    log_level: str = field(default_factory=lambda: os.environ.get("WINGETWIZARD_LOG_LEVEL", "INFO"))

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: If a field is out of range
        """
        for name in ("list_timeout_seconds", "search_timeout_seconds", "lifecycle_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.output_tail_chars <= 0:
            raise ValueError("output_tail_chars must be positive")
        if not 0 < self.search_limit <= MAX_SEARCH_LIMIT:
            raise ValueError(f"search_limit must be between 1 and {MAX_SEARCH_LIMIT}")
        if self.default_source not in ("winget", "msstore", "all"):
            raise ValueError(f"Unknown source: {self.default_source}")
        if not self.winget_path.strip():
            raise ValueError("winget_path must not be empty")

    @property
    def config_file(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def ai_settings_file(self) -> Path:
        return self.data_dir / "ai_settings.json"

    def with_updates(self, **changes: Any) -> "WizardConfig":
        """
        Return a copy with the given fields changed.

        Raises:
            ValueError: On unknown fields or invalid values
        """
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "winget_path": self.winget_path,
            "default_source": self.default_source,
            "verbose": self.verbose,
            "list_timeout_seconds": self.list_timeout_seconds,
            "search_timeout_seconds": self.search_timeout_seconds,
            "lifecycle_timeout_seconds": self.lifecycle_timeout_seconds,
            "output_tail_chars": self.output_tail_chars,
            "search_limit": self.search_limit,
            "data_dir": str(self.data_dir),
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WizardConfig":
        """Create from dictionary, ignoring unknown keys."""
        defaults = cls()
        return cls(
            winget_path=data.get("winget_path", defaults.winget_path),
            default_source=data.get("default_source", defaults.default_source),
            verbose=data.get("verbose", defaults.verbose),
            list_timeout_seconds=data.get("list_timeout_seconds", defaults.list_timeout_seconds),
            search_timeout_seconds=data.get("search_timeout_seconds", defaults.search_timeout_seconds),
            lifecycle_timeout_seconds=data.get(
                "lifecycle_timeout_seconds", defaults.lifecycle_timeout_seconds
            ),
            output_tail_chars=data.get("output_tail_chars", defaults.output_tail_chars),
            search_limit=data.get("search_limit", defaults.search_limit),
            data_dir=Path(data["data_dir"]).expanduser() if data.get("data_dir") else defaults.data_dir,
            log_level=data.get("log_level", defaults.log_level),
        )

    def save(self, path: Optional[Path] = None) -> None:
        """
        Save configuration to disk.

        Args:
            path: Target file (defaults to <data_dir>/config.json)
        """
        target = Path(path) if path else self.config_file
        target.parent.mkdir(parents=True, exist_ok=True)

        lock = filelock.FileLock(str(target) + ".lock")
        with lock.acquire(timeout=LOCK_TIMEOUT):
            with open(target, "w") as f:
                json.dump(self.to_dict(), f, indent=2)

        logger.info(f"[config] Saved configuration to {target}")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "WizardConfig":
        """
        Load configuration from disk, or return defaults if missing or invalid.

        Args:
            path: Source file (defaults to <data_dir>/config.json)
        """
        target = Path(path) if path else cls().config_file
        if not target.exists():
            return cls()

        try:
            with open(target) as f:
                data = json.load(f)
            config = cls.from_dict(data)
            logger.debug(f"[config] Loaded configuration from {target}")
            return config
        except (json.JSONDecodeError, OSError, ValueError, TypeError) as e:
            logger.warning(f"[config] Could not load {target}, using defaults: {e}")
            return cls()
