"""Locate and merge the TOML configuration layers.

The engine reads ``default.toml`` from the config directory and then the
optional ``{ATTUNE_ENV}.toml`` layer on top of it. Environment variables
are applied afterwards by the Settings model, not here.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_VAR = "ATTUNE_CONFIG_DIR"
ENVIRONMENT_VAR = "ATTUNE_ENV"
DEFAULT_ENVIRONMENT = "development"
DEFAULT_FILE = "default.toml"

# How many ancestors of the working directory are searched for config/
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Resolve the directory holding the TOML layers.

    ATTUNE_CONFIG_DIR wins when set and must point to an existing directory.
    Otherwise the working directory and its nearest ancestors are searched
    for a ``config/`` folder, falling back to a relative ``config``.
    """
    explicit = os.environ.get(CONFIG_DIR_VAR)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_VAR} does not exist: {explicit}")
        return path

    cwd = Path.cwd()
    for candidate in [cwd, *cwd.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return Path("config")


def get_environment() -> str:
    """Name of the active environment layer (ATTUNE_ENV, default development)."""
    return os.environ.get(ENVIRONMENT_VAR) or DEFAULT_ENVIRONMENT


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file is missing
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    return tomllib.loads(file_path.read_text(encoding="utf-8"))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` layered on top.

    Tables present on both sides merge key by key; anything else in
    ``override`` replaces the base value outright. Inputs are left untouched.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_dir: Path | None = None,
    environment: str | None = None,
) -> dict[str, Any]:
    """Merge ``default.toml`` with the environment layer, if one exists.

    Args:
        config_dir: Directory to read from (default: get_config_dir())
        environment: Environment layer name (default: get_environment())

    Raises:
        FileNotFoundError: If default.toml is missing
    """
    config_dir = config_dir or get_config_dir()
    environment = environment or get_environment()

    default_path = config_dir / DEFAULT_FILE
    if not default_path.is_file():
        raise FileNotFoundError(
            f"{DEFAULT_FILE} not found in {config_dir}; "
            f"create it or point {CONFIG_DIR_VAR} at a config directory"
        )

    layers = [default_path, config_dir / f"{environment}.toml"]
    config: dict[str, Any] = {}
    for path in layers:
        if path.is_file():
            config = deep_merge(config, load_toml(path))
    return config
