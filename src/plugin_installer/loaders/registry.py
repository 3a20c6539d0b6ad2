from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..models.plugin import Plugin

if TYPE_CHECKING:
    from pathlib import Path


def load_registry(path: Path) -> dict[str, Plugin]:
    """Load the declared plugin set from a JSON file.

    Accepts either an object keyed by plugin name or a list of plugin objects.
    Declaration order is preserved.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Plugin registry not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read plugin registry {path}: {e}") from e
    return parse_registry(data)


def parse_registry(data: Any) -> dict[str, Plugin]:
    if isinstance(data, dict):
        entries = [
            {"name": name, **value} if isinstance(value, dict) else value
            for name, value in data.items()
        ]
    elif isinstance(data, list):
        entries = data
    else:
        raise ConfigurationError("Plugin registry must be an object or a list")

    plugins: dict[str, Plugin] = {}
    for entry in entries:
        try:
            plugin = Plugin.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid plugin declaration: {e}") from e
        plugins[plugin.name] = plugin
    return plugins
