from .config import load_config
from .registry import load_registry, parse_registry

__all__ = [
    "load_config",
    "load_registry",
    "parse_registry",
]
