from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..models.config import InstallerConfig

if TYPE_CHECKING:
    from pathlib import Path


def load_config(path: Path) -> InstallerConfig:
    """Load installer options from a JSON file. A missing file yields the defaults."""
    if not path.exists():
        return InstallerConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain an object")
    try:
        return InstallerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid installer config in {path}: {e}") from e
