"""
Configuration - runtime settings and the persisted ``config.json``.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional
import json
import logging
import os

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SHELLCHROME_CONFIG"
DEFAULT_CONFIG_PATH = "./config.json"


@dataclass
class ShellChromeConfig:
    """Settings for a browsing session."""
    headless: bool = True
    page_load_timeout: int = 30  # Seconds before a navigation is abandoned
    settle_delay: float = 0.1  # Pause after scrolling an element into view
    new_tab_settle: float = 1.0  # Pause before looking for a tab opened by a click
    wait_timeout_ms: int = 10000
    screenshot_path: str = "./image.png"
    with_bounds: bool = True  # Ask the driver for box models while snapshotting
    interesting_only: bool = True
    profile_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShellChromeConfig":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def config_path(path: Optional[str] = None) -> str:
    """Resolve the config file location (argument, then env var, then default)."""
    return path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH


def _read_raw(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"[Config] Could not read {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[Config] Ignoring {path}: top level is not an object")
        return {}
    return data


def load_config(path: Optional[str] = None) -> ShellChromeConfig:
    """
    Load the persisted configuration.

    A missing or unreadable file yields the defaults.
    """
    return ShellChromeConfig.from_dict(_read_raw(config_path(path)))


def save_config(path: Optional[str] = None, **updates: Any) -> ShellChromeConfig:
    """
    Merge ``updates`` into the persisted configuration and write it back.

    Returns:
        The configuration after the merge
    """
    target = config_path(path)
    merged = _read_raw(target)
    merged.update(updates)
    config = ShellChromeConfig.from_dict(merged)

    parent = os.path.dirname(os.path.abspath(target))
    os.makedirs(parent, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)

    return config
