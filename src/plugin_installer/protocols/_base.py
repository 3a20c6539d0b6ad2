"""Protocol (port) for version-control providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..models.plugin import Plugin


@dataclass(frozen=True)
class Command:
    """An executable plus its arguments. The working directory is chosen by the caller."""

    command: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)


class VCSProtocol(Protocol):
    """Builds the command lines for one version-control system.

    Computing a command list has no side effects; executing it does. Revision
    queries return "" when the plugin is not installed or the revision is unknown.
    """

    def sync_commands(self, plugin: Plugin) -> list[Command]: ...
    def rollback_commands(self, plugin: Plugin, rev: str) -> list[Command]: ...
    def revision_lock_commands(self, plugin: Plugin, rev: str | None) -> list[Command]: ...
    def current_revision(self, plugin: Plugin) -> str: ...
    def remote_revision(self, plugin: Plugin) -> str: ...
    def remote_check_commands(self, plugin: Plugin) -> list[Command]: ...
    def log_commands(self, plugin: Plugin, old_rev: str, new_rev: str) -> list[Command]: ...
    def changes_count_commands(
        self, plugin: Plugin, old_rev: str, new_rev: str
    ) -> list[Command]: ...
    def diff_commands(self, plugin: Plugin, old_rev: str, new_rev: str) -> list[Command]: ...
    def url(self, plugin: Plugin) -> str: ...


@dataclass(frozen=True)
class ProtocolBinding:
    """A plugin's protocol name paired with the configured adapter serving it."""

    name: str
    protocol: VCSProtocol
