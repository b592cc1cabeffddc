"""depedit settings.

Settings are stored in ~/.config/depedit/config.toml. Every field has a
default, so a missing file is not an error.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from depedit.core.paths import DEFAULT_MANIFEST_NAME, get_config_path

logger = logging.getLogger(__name__)


class DepeditConfig(BaseModel):
    """User settings for depedit.

    Attributes:
        default_registry: Registry applied to registry dependencies when
            ``--registry`` is not given.
        manifest_name: File name searched for when ``--manifest-path`` is
            not given.
        index_file: Local registry index snapshot used to pick versions and
            list available features.
    """

    model_config = ConfigDict(extra="forbid")

    default_registry: Annotated[
        str | None,
        Field(description="Registry for registry dependencies (None = crates.io)"),
    ] = None
    manifest_name: Annotated[
        str,
        Field(min_length=1, description="Manifest file name"),
    ] = DEFAULT_MANIFEST_NAME
    index_file: Annotated[
        Path | None,
        Field(description="Local registry index snapshot"),
    ] = None


class ConfigError(Exception):
    """Base exception for settings errors."""


class ConfigParseError(ConfigError):
    """Raised when the settings file cannot be parsed."""


def load_config(path: Path | None = None) -> DepeditConfig:
    """Load settings from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated DepeditConfig; defaults if the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config at %s, using defaults", config_path)
        return DepeditConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return DepeditConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_config(config: DepeditConfig, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The settings to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # TOML has no null, so unset fields are left out
    data: dict[str, Any] = {
        key: str(value) if isinstance(value, Path) else value
        for key, value in config.model_dump().items()
        if value is not None
    }

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path
