"""XDG-compliant path management and manifest discovery for depedit.

This module provides the configuration directory following the XDG Base
Directory Specification, and locates the manifest a command should edit.

XDG defaults:
- Config: ~/.config/depedit/
"""

import os
from pathlib import Path

from depedit.core.errors import ManifestNotFoundError

# Application identifier for directory naming
APP_NAME = "depedit"

DEFAULT_MANIFEST_NAME = "Cargo.toml"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/depedit/ (or XDG_CONFIG_HOME/depedit/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_config_path() -> Path:
    """Get the settings file path.

    Returns:
        Path to ~/.config/depedit/config.toml.
    """
    return get_config_dir() / "config.toml"


def find_manifest(start: Path | None = None, name: str = DEFAULT_MANIFEST_NAME) -> Path:
    """Find the manifest for the package containing ``start``.

    Walks up from ``start`` (default: the current directory) and returns
    the first directory entry called ``name``.

    Args:
        start: Directory to start searching from.
        name: Manifest file name.

    Returns:
        Absolute path of the manifest.

    Raises:
        ManifestNotFoundError: If no ancestor directory holds a manifest.
    """
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / name
        if candidate.is_file():
            return candidate
    raise ManifestNotFoundError(f"Could not find `{name}` in `{directory}` or any parent directory")
