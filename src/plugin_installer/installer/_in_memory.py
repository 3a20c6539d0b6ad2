"""In-memory adapters for testing (no disk I/O, no editor)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ._adapters import LATEST, check_label, unique_label

if TYPE_CHECKING:
    from ..models.plugin import Plugin


class InMemoryRegistryAdapter:
    def __init__(self, plugins: list[Plugin] | None = None) -> None:
        self._plugins = {p.name: p for p in plugins or []}

    def get_plugins(self) -> dict[str, Plugin]:
        return dict(self._plugins)


class InMemoryRollbackAdapter:
    def __init__(self, snapshots: dict[str, dict[str, str]] | None = None) -> None:
        self.snapshots = {k: dict(v) for k, v in (snapshots or {}).items()}
        self.saved_at: datetime | None = None
        self.save_count = 0

    def save(self, revisions: dict[str, str]) -> list[str]:
        labels = [LATEST, unique_label(lambda label: label in self.snapshots)]
        for label in labels:
            self.snapshots[label] = dict(revisions)
        self.saved_at = datetime.now(timezone.utc)
        self.save_count += 1
        return labels

    def load(self, label: str) -> dict[str, str]:
        return dict(self.snapshots.get(check_label(label), {}))

    def latest_saved_at(self) -> datetime | None:
        if LATEST not in self.snapshots:
            return None
        return self.saved_at


class RecordingHostAdapter:
    """Records every call so tests can assert on what the editor would have seen."""

    def __init__(self, confirm_answer: bool = True) -> None:
        self.messages: list[str] = []
        self.progress: list[str] = []
        self.errors: list[str] = []
        self.hooks: list[tuple[str, str]] = []
        self.prompts: list[str] = []
        self.diffs: dict[str, list[str]] = {}
        self.make_state_calls = 0
        self.update_done_calls = 0
        self.close_progress_calls = 0
        self._confirm_answer = confirm_answer

    def print_message(self, msg: str) -> None:
        self.messages.append(msg)

    def print_progress(self, msg: str) -> None:
        self.progress.append(msg)

    def print_error(self, msg: str) -> None:
        self.errors.append(msg)

    def close_progress(self) -> None:
        self.close_progress_calls += 1

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self._confirm_answer

    def call_hook(self, hook: str, plugin: Plugin) -> None:
        self.hooks.append((hook, plugin.name))

    def show_diff(self, plugin: Plugin, lines: list[str]) -> None:
        self.diffs.setdefault(plugin.name, []).extend(lines)

    def shell(self) -> tuple[str, str]:
        return "/bin/sh", "-c"

    def make_state(self) -> None:
        self.make_state_calls += 1

    def update_done(self) -> None:
        self.update_done_calls += 1
