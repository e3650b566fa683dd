"""Settings for the mirror cache and the git operation defaults.

Values come from an INI file, ``gitdelta.cfg`` in the per-user config directory:

    [dirs]
    mirror_cache = ~/.cache/gitdelta/mirrors

    [git]
    capability = /usr/bin/git
    fetch_timeout = 300
    lock_timeout = 600
    max_changes = 100

Anything missing falls back to the defaults below.
"""

import configparser
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional

APP_NAME = "gitdelta"

# Environment override for the native git capability
GIT_CAPABILITY_ENV = "GITDELTA_GIT"

logger = logging.getLogger(__name__)


def _xdg_dir(variable: str, *fallback: str) -> str:
    return os.environ.get(variable) or os.path.join(os.path.expanduser("~"), *fallback)


DEFAULT_MIRROR_CACHE = os.path.join(_xdg_dir("XDG_CACHE_HOME", ".cache"), APP_NAME, "mirrors")
DEFAULT_FETCH_TIMEOUT = 300.0
DEFAULT_LOCK_TIMEOUT = 600.0
DEFAULT_MAX_CHANGES = 100

if platform.system() == "Darwin":
    config_dir = Path("~/Library/Application Support", APP_NAME).expanduser()
else:
    config_dir = Path(_xdg_dir("XDG_CONFIG_HOME", ".config"), APP_NAME)


def get_config_file() -> Path:
    return config_dir / f"{APP_NAME}.cfg"


class ConfigAccessor:
    """
    Read access to an INI settings file, with typed lookups.

    A missing file behaves like an empty one, and missing sections or keys
    return the supplied default.

    Usage:
        config = ConfigAccessor()
        timeout = config.get_float("git", "fetch_timeout")
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or get_config_file()
        self.config = configparser.ConfigParser()
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        if not self.config.has_option(section, key):
            return default
        return self.config.get(section, key)

    def get_float(self, section: str, key: str, default: Optional[float] = None):
        value = self.get(section, key)
        if value is None or not value.strip():
            return default
        return float(value)

    def get_int(self, section: str, key: str, default: Optional[int] = None):
        value = self.get(section, key)
        if value is None or not value.strip():
            return default
        return int(value)

    def set(self, section: str, key: str, value: str) -> None:
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, value)

    def save(self) -> None:
        """Write the settings back; an unwritable location only logs a warning."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as fh:
                self.config.write(fh)
        except OSError as e:
            logger.warning(f"Could not save configuration to {self.config_path}: {e}")

    def sections(self) -> list:
        return self.config.sections()


config = ConfigAccessor()


def get_mirror_cache_dir() -> Path:
    """
    Get the directory holding repository mirrors, creating it if needed.

    Returns:
        Path to the mirror cache (defaults to ~/.cache/gitdelta/mirrors)
    """
    cache_dir = Path(config.get("dirs", "mirror_cache", DEFAULT_MIRROR_CACHE)).expanduser()
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def get_git_capability() -> Optional[str]:
    """
    Get the configured path of a native git executable.

    The GITDELTA_GIT environment variable takes precedence over the config file.
    An unset or blank value means the embedded implementation is used.
    """
    capability = os.environ.get(GIT_CAPABILITY_ENV)
    if capability is None:
        capability = config.get("git", "capability")
    if capability is None or not capability.strip():
        return None
    return capability.strip()


def get_fetch_timeout() -> float:
    """Seconds a single fetch may take before it is aborted."""
    return config.get_float("git", "fetch_timeout", DEFAULT_FETCH_TIMEOUT)


def get_lock_timeout() -> float:
    return config.get_float("git", "lock_timeout", DEFAULT_LOCK_TIMEOUT)


def get_max_changes() -> int:
    return config.get_int("git", "max_changes", DEFAULT_MAX_CHANGES)
