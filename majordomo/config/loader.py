"""Load and save the JSON config file."""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger

from majordomo.config.schema import Config

# Maps whose keys are user data (action names, category names) and must keep their casing.
_OPAQUE_KEYS = {"decay_rates", "reinforce_boosts"}


def get_data_dir() -> Path:
    """Return ~/.majordomo, creating it if needed."""
    path = Path.home() / ".majordomo"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return Path.home() / ".majordomo" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, or return defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return Config.model_validate(convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to file with camelCase keys."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def convert_keys(data: Any, _parent: str | None = None) -> Any:
    """Convert camelCase keys to snake_case, leaving opaque maps untouched."""
    if isinstance(data, dict):
        if _parent in _OPAQUE_KEYS:
            return dict(data)
        out = {}
        for k, v in data.items():
            key = camel_to_snake(k)
            out[key] = convert_keys(v, key)
        return out
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any, _parent: str | None = None) -> Any:
    """Convert snake_case keys to camelCase, leaving opaque maps untouched."""
    if isinstance(data, dict):
        if _parent in _OPAQUE_KEYS:
            return dict(data)
        return {snake_to_camel(k): convert_to_camel(v, k) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)
