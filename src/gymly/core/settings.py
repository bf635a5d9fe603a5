"""
YAML → typed settings loader.

Check-in timings default to the constants in config.py and can be
overridden per user in ~/.gymly/settings.yaml:

    checkin:
      radius_m: 150
      detection_delay_s: 0.3
      tick_interval_s: 1.0
    profile:
      display_name: Maja

If the user file is unreadable, a warning is issued and defaults are used.
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .config import DEFAULT_DISPLAY_NAME, DETECTION_DELAY_S, DETECTION_RADIUS_M, TICK_INTERVAL_S


@dataclass(frozen=True)
class Settings:
    """Effective runtime settings."""

    radius_m: float = DETECTION_RADIUS_M
    detection_delay_s: float = DETECTION_DELAY_S
    tick_interval_s: float = TICK_INTERVAL_S
    display_name: str = DEFAULT_DISPLAY_NAME

    def __post_init__(self) -> None:
        if self.radius_m <= 0:
            raise ValueError("radius_m must be positive")
        if self.detection_delay_s < 0:
            raise ValueError("detection_delay_s must be non-negative")
        if self.tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be positive")


def get_user_settings_path() -> Path | None:
    """Return ~/.gymly/settings.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".gymly" / "settings.yaml"
    return p if p.exists() else None


def _load_yaml_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"gymly: ignoring {path} ({exc})", stacklevel=2)
        return {}
    return data if isinstance(data, dict) else {}


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build Settings from a parsed YAML mapping; missing keys keep defaults."""
    checkin = data.get("checkin") or {}
    profile = data.get("profile") or {}
    defaults = Settings()
    return Settings(
        radius_m=float(checkin.get("radius_m", defaults.radius_m)),
        detection_delay_s=float(checkin.get("detection_delay_s", defaults.detection_delay_s)),
        tick_interval_s=float(checkin.get("tick_interval_s", defaults.tick_interval_s)),
        display_name=str(profile.get("display_name", defaults.display_name)),
    )


def load_settings(path: Path | None = None) -> Settings:
    """
    Load settings, applying the user override file when present.

    Args:
        path: Explicit settings file (defaults to ~/.gymly/settings.yaml)

    Returns:
        Settings; defaults if no file exists or it is invalid
    """
    path = path or get_user_settings_path()
    if path is None:
        return Settings()
    try:
        return settings_from_dict(_load_yaml_file(path))
    except (AttributeError, TypeError, ValueError) as exc:
        warnings.warn(f"gymly: invalid settings in {path} ({exc}); using defaults", stacklevel=2)
        return Settings()
