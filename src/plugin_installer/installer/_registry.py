from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.plugin import Plugin
    from ._protocols import PluginRegistryAdapter


def list_plugins(registry: PluginRegistryAdapter, names: Iterable[str] = ()) -> list[Plugin]:
    """Plugins eligible for update workflows, in declaration order.

    Local and frozen plugins are dropped even when named. Requested names that
    match nothing are silently absent; reporting them is up to the caller.
    """
    wanted = set(names)
    plugins = [p for p in registry.get_plugins().values() if not p.excluded]
    if wanted:
        plugins = [p for p in plugins if p.name in wanted]
    return plugins


def missing_names(plugins: Iterable[Plugin], names: Iterable[str]) -> list[str]:
    found = {p.name for p in plugins}
    return sorted(set(names) - found)
