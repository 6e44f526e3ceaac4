"""
Configuration management for lkflow.

Provides a flat configuration object for the Lucas-Kanade solver that can
be stored as JSON and overridden from environment variables.
"""

import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any


WEIGHTING_MODES = ("uniform", "gaussian")


@dataclass
class FlowConfig:
    """
    Lucas-Kanade solver configuration.

    Example:
        config = FlowConfig.load("flow_config.json")
        flow = LucasKanadeFlow.from_config(config)
    """
    sigma: float = 0.84
    iteration_count: int = 10
    window_size: tuple[float, float] = (15.0, 15.0)
    weighting: str = "uniform"  # "uniform" or "gaussian"
    workers: int | None = None

    def __post_init__(self):
        if self.weighting not in WEIGHTING_MODES:
            raise ValueError(
                f"Invalid weighting: {self.weighting}. Must be one of {WEIGHTING_MODES}"
            )
        if self.iteration_count < 0:
            raise ValueError(f"iteration_count must be >= 0, got {self.iteration_count}")
        self.window_size = tuple(float(v) for v in self.window_size)
        if len(self.window_size) != 2:
            raise ValueError("window_size must have exactly two values (height, width)")

    @classmethod
    def load(cls, path: str | Path) -> "FlowConfig":
        """Load configuration from a JSON file."""
        return load_config(path)

    def save(self, path: str | Path) -> None:
        """Save configuration to a JSON file."""
        save_config(self, path)

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        data = asdict(self)
        data["window_size"] = list(self.window_size)
        return data

    def apply_overrides(self, overrides: dict[str, Any]) -> "FlowConfig":
        """
        Return a copy with the given values replaced.

        String values (as they come from the environment) are coerced to
        the type of the field they override. Unknown keys are ignored.
        """
        data = self.to_dict()
        for key, value in overrides.items():
            if key not in data:
                continue
            if isinstance(value, str):
                value = _coerce(key, value)
            data[key] = value
        return FlowConfig(**data)


def _coerce(key: str, value: str) -> Any:
    """Convert a string override to the type of the named field."""
    if key == "sigma":
        return float(value)
    if key == "iteration_count":
        return int(value)
    if key == "workers":
        return None if value.lower() in ("", "none", "auto") else int(value)
    if key == "window_size":
        parts = value.replace("x", ",").split(",")
        return tuple(float(p) for p in parts)
    return value


def load_config(path: str | Path) -> FlowConfig:
    """
    Load configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Parsed FlowConfig object

    Raises:
        FileNotFoundError: If the config file doesn't exist
        json.JSONDecodeError: If the JSON is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    defaults = FlowConfig()
    return FlowConfig(
        sigma=data.get("sigma", defaults.sigma),
        iteration_count=data.get("iteration_count", defaults.iteration_count),
        window_size=data.get("window_size", defaults.window_size),
        weighting=data.get("weighting", defaults.weighting),
        workers=data.get("workers", defaults.workers),
    )


def save_config(config: FlowConfig, path: str | Path) -> None:
    """
    Save configuration to a JSON file.

    Args:
        config: Configuration object to save
        path: Output path for the JSON file
    """
    path = Path(path)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def get_env_config(prefix: str = "LKFLOW_") -> dict[str, Any]:
    """
    Get configuration from environment variables.

    All environment variables starting with the prefix will be included.
    Variable names are converted to lowercase with the prefix removed.

    Example:
        LKFLOW_ITERATION_COUNT=20 -> {"iteration_count": "20"}
    """
    config = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            config[config_key] = value
    return config
