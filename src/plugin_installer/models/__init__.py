from .config import InstallerConfig
from .plugin import Plugin

__all__ = [
    "InstallerConfig",
    "Plugin",
]
