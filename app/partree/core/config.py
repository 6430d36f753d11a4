"""User settings for partree.

This module provides the settings model and I/O functions for the
persisted redundancy preference and the recovery engine location.

Settings are stored in ~/.config/partree/config.toml
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from partree.core.paths import get_config_path

logger = logging.getLogger(__name__)

DEFAULT_REDUNDANCY_PERCENT = 10.0
MIN_REDUNDANCY_PERCENT = 1.0
MAX_REDUNDANCY_PERCENT = 1000.0

# par2j executable name, resolved through PATH unless engine_path is set
DEFAULT_ENGINE_NAME = "par2j64"


class PartreeConfig(BaseModel):
    """Persisted partree settings.

    Attributes:
        redundancy_percent: Recovery data size as a percentage of the
            protected data (1-1000, three significant figures).
        engine_path: Path to the par2j executable. If None, the default
            executable name is looked up on PATH.
    """

    model_config = ConfigDict(extra="forbid")

    redundancy_percent: Annotated[
        float,
        Field(
            ge=MIN_REDUNDANCY_PERCENT,
            le=MAX_REDUNDANCY_PERCENT,
            description="Redundancy percentage (1-1000)",
        ),
    ] = DEFAULT_REDUNDANCY_PERCENT
    engine_path: Annotated[
        Path | None,
        Field(description="par2j executable (None = look up on PATH)"),
    ] = None

    @field_validator("redundancy_percent")
    @classmethod
    def round_redundancy(cls, v: float) -> float:
        """Round the redundancy to three significant figures."""
        return float(f"{v:.3g}")

    @property
    def engine_command(self) -> str:
        """Get the engine executable to invoke.

        Returns:
            The configured engine path, or the default executable name.
        """
        if self.engine_path is not None:
            return str(self.engine_path)
        return DEFAULT_ENGINE_NAME


class ConfigError(Exception):
    """Base exception for settings errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the settings file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the settings file cannot be parsed."""


def load_config(path: Path | None = None) -> PartreeConfig:
    """Load settings from a TOML file.

    Args:
        path: Path to the settings file. If None, uses the default path.

    Returns:
        Validated PartreeConfig object.

    Raises:
        ConfigNotFoundError: If the settings file doesn't exist.
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Settings file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read settings: {e}") from e

    try:
        return PartreeConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid settings content: {e}") from e


def load_config_or_default(path: Path | None = None) -> PartreeConfig:
    """Load settings, falling back to defaults when no file exists yet.

    Parse and schema errors still propagate so that a broken file is
    reported rather than silently replaced on the next save.

    Args:
        path: Path to the settings file. If None, uses the default path.

    Returns:
        Loaded or default PartreeConfig.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    try:
        return load_config(path)
    except ConfigNotFoundError:
        logger.debug("No settings file, using defaults")
        return PartreeConfig()


def save_config(config: PartreeConfig, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The PartreeConfig object to save.
        path: Path to save the settings. If None, uses the default path.

    Returns:
        Path where the settings were saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()

    data = _config_to_dict(config)

    tmp_path: Path | None = None
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        # os.replace() is atomic on POSIX
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write settings: {e}") from e

    return config_path


def _config_to_dict(config: PartreeConfig) -> dict[str, object]:
    """Convert PartreeConfig to a dictionary for TOML serialization.

    Only includes non-None values to keep the file clean.

    Args:
        config: The PartreeConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    result: dict[str, object] = {"redundancy_percent": config.redundancy_percent}

    if config.engine_path is not None:
        result["engine_path"] = str(config.engine_path)

    return result
