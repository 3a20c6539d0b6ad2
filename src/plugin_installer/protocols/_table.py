from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from ..errors import ConfigurationError
from ._base import ProtocolBinding, VCSProtocol
from ._git import GitProtocol

if TYPE_CHECKING:
    from ..models.plugin import Plugin


def default_protocols() -> dict[str, VCSProtocol]:
    return {"git": GitProtocol()}


class ProtocolTable:
    """Name → protocol adapter lookup, built once when the installer is created."""

    def __init__(self, protocols: Mapping[str, VCSProtocol] | None = None) -> None:
        self._protocols = dict(protocols if protocols is not None else default_protocols())

    def names(self) -> list[str]:
        return sorted(self._protocols)

    def resolve(self, plugin: Plugin) -> ProtocolBinding | None:
        """Return the binding for the plugin's protocol.

        Returns None when the plugin declares no protocol at all.

        Raises:
            ConfigurationError: If the declared protocol is not registered.
        """
        name = plugin.protocol or ""
        if not name:
            return None
        protocol = self._protocols.get(name)
        if protocol is None:
            raise ConfigurationError(f"Unknown protocol {name!r} for plugin {plugin.name}")
        return ProtocolBinding(name=name, protocol=protocol)
