"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path

import pytest

PACKAGE_MANIFEST = """\
[package]
name = "demo"
version = "0.1.0"

[dependencies]
# logging stack
log = "0.4"
serde = { version = "1.0", features = ["derive"] }

[dev-dependencies]
regex = "1"

[target.'cfg(unix)'.dependencies]
libc = "0.2"

[features]
default = ["serde"]
"""


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at a temporary directory so user settings are never read."""
    config_home = tmp_path / "xdg-config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home


@pytest.fixture
def manifest_text() -> str:
    """Manifest with regular, dev and target-specific dependencies."""
    return PACKAGE_MANIFEST


@pytest.fixture
def manifest_file(tmp_path: Path, manifest_text: str) -> Path:
    """Write the sample manifest into its own package directory."""
    package_dir = tmp_path / "demo"
    package_dir.mkdir()
    path = package_dir / "Cargo.toml"
    path.write_text(manifest_text)
    return path


@pytest.fixture
def write_package(tmp_path: Path):
    """Factory creating a package directory with a minimal manifest."""

    def _write(
        name: str, version: str = "0.1.0", extra: str = "", directory: str | None = None
    ) -> Path:
        package_dir = tmp_path / (directory or name)
        package_dir.mkdir(parents=True, exist_ok=True)
        manifest = f'[package]\nname = "{name}"\nversion = "{version}"\n{extra}'
        (package_dir / "Cargo.toml").write_text(manifest)
        return package_dir

    return _write
