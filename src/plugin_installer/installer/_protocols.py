"""Protocols (ports) for the installer."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..models.plugin import Plugin


class PluginRegistryAdapter(Protocol):
    """Read access to the declared plugin set, keyed by name in declaration order."""

    def get_plugins(self) -> dict[str, Plugin]: ...


class RollbackStateAdapter(Protocol):
    """Persists name → revision snapshots under `latest` and timestamp labels."""

    def save(self, revisions: dict[str, str]) -> list[str]: ...
    def load(self, label: str) -> dict[str, str]: ...
    def latest_saved_at(self) -> datetime | None: ...


class HostAdapter(Protocol):
    """The editor surface: display, prompts, hooks and state signals."""

    def print_message(self, msg: str) -> None: ...
    def print_progress(self, msg: str) -> None: ...
    def print_error(self, msg: str) -> None: ...
    def close_progress(self) -> None: ...
    def confirm(self, prompt: str) -> bool: ...
    def call_hook(self, hook: str, plugin: Plugin) -> None: ...
    def show_diff(self, plugin: Plugin, lines: list[str]) -> None: ...
    def shell(self) -> tuple[str, str]: ...
    def make_state(self) -> None: ...
    def update_done(self) -> None: ...
