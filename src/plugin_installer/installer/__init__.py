"""Installer API: install, update, reinstall, build and staleness checks."""

from __future__ import annotations

from pathlib import Path

from ..loaders.config import load_config
from ..models.config import InstallerConfig
from ..protocols._table import ProtocolTable
from ._adapters import (
    ConsoleHostAdapter,
    LocalFilesystemRegistryAdapter,
    LocalFilesystemRollbackAdapter,
)
from ._installer import Installer
from ._protocols import HostAdapter, PluginRegistryAdapter, RollbackStateAdapter
from ._run import CheckedPlugin, RunContext, UpdateOutcome, WorkflowResult, WorkflowStatus


def make_installer(
    base_dir: Path | None = None,
    registry_file: Path | None = None,
    config: InstallerConfig | Path | None = None,
    host: HostAdapter | None = None,
    protocols: ProtocolTable | None = None,
) -> Installer:
    """Build an Installer with local filesystem adapters.

    base_dir: defaults to ~/.cache/plugin-installer (rollback records live below it)
    registry_file: defaults to <base_dir>/plugins.json
    config: an InstallerConfig, or a path to a JSON config file;
        defaults to <base_dir>/config.json when that exists
    host: defaults to a ConsoleHostAdapter writing to stderr
    """
    base_dir = Path(base_dir) if base_dir else Path.home() / ".cache" / "plugin-installer"
    registry_file = registry_file or base_dir / "plugins.json"
    if not isinstance(config, InstallerConfig):
        config = load_config(Path(config) if config else base_dir / "config.json")

    return Installer(
        registry=LocalFilesystemRegistryAdapter(registry_file),
        rollbacks=LocalFilesystemRollbackAdapter(base_dir),
        host=host or ConsoleHostAdapter(),
        config=config,
        protocols=protocols,
    )


__all__ = [
    "CheckedPlugin",
    "ConsoleHostAdapter",
    "HostAdapter",
    "Installer",
    "LocalFilesystemRegistryAdapter",
    "LocalFilesystemRollbackAdapter",
    "PluginRegistryAdapter",
    "RollbackStateAdapter",
    "RunContext",
    "UpdateOutcome",
    "WorkflowResult",
    "WorkflowStatus",
    "make_installer",
]
