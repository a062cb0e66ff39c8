"""Core module - configuration, errors and driver management."""

from shellchrome.core.config import ShellChromeConfig, load_config, save_config
from shellchrome.core.errors import (
    DriverFailure,
    NotFound,
    ShellChromeError,
    StaleReference,
    WaitTimeout,
)

__all__ = [
    "ShellChromeConfig",
    "load_config",
    "save_config",
    "ShellChromeError",
    "NotFound",
    "StaleReference",
    "WaitTimeout",
    "DriverFailure",
]
