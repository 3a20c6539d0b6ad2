"""Concrete adapters for the local filesystem and a plain console host."""

from __future__ import annotations

import json
import os
import re
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import structlog

from ..errors import ConfigurationError, CorruptStateError
from ..loaders.registry import load_registry

if TYPE_CHECKING:
    from ..models.plugin import Plugin

logger = structlog.get_logger(__name__)

LATEST = "latest"
_LABEL_RE = re.compile(r"^[\w.-]+$")


def _atomic_write(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(data, encoding="utf-8")
    tmp.replace(path)


def timestamp_label(now: datetime | None = None) -> str:
    """Two digits each for year, month, day, hour, minute and second: sortable as text."""
    return (now or datetime.now()).strftime("%y%m%d%H%M%S")


def unique_label(taken: Callable[[str], bool]) -> str:
    """A fresh timestamp label, suffixed "-1", "-2", ... if that second already has a snapshot."""
    base = timestamp_label()
    label = base
    suffix = 0
    while taken(label):
        suffix += 1
        label = f"{base}-{suffix}"
    return label


def check_label(label: str) -> str:
    if not _LABEL_RE.match(label) or label in (".", ".."):
        raise ConfigurationError(f"Invalid rollback label: {label!r}")
    return label


class LocalFilesystemRegistryAdapter:
    """Reads the declared plugin set from a JSON file on every call."""

    def __init__(self, registry_file: Path) -> None:
        self._path = Path(registry_file)

    def get_plugins(self) -> dict[str, Plugin]:
        return load_registry(self._path)


class LocalFilesystemRollbackAdapter:
    """Reads/writes <base>/rollbacks/<label>/rollback.json."""

    def __init__(self, base_dir: Path) -> None:
        self._dir = Path(base_dir) / "rollbacks"

    def path_for(self, label: str) -> Path:
        return self._dir / check_label(label) / "rollback.json"

    def save(self, revisions: dict[str, str]) -> list[str]:
        data = json.dumps(revisions, indent=2, sort_keys=True)
        labels = [LATEST, unique_label(lambda label: self.path_for(label).exists())]
        for label in labels:
            _atomic_write(self.path_for(label), data)
        logger.info("rollback_saved", labels=labels, plugins=len(revisions))
        return labels

    def load(self, label: str) -> dict[str, str]:
        path = self.path_for(label)
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptStateError(f"Invalid rollback record {path}: {e}", path=path) from e
        if not isinstance(raw, dict):
            raise CorruptStateError(f"Rollback record {path} is not an object", path=path)
        # Unknown non-revision content is ignored
        return {k: v for k, v in raw.items() if isinstance(v, str)}

    def latest_saved_at(self) -> datetime | None:
        path = self.path_for(LATEST)
        if not path.exists():
            return None
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    def labels(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.name for p in self._dir.iterdir() if (p / "rollback.json").exists())


class ConsoleHostAdapter:
    """Host for headless use: messages go to a text stream, hooks are only logged.

    ``assume_yes`` answers every confirmation prompt.
    """

    def __init__(self, stream: TextIO | None = None, assume_yes: bool = False) -> None:
        self._stream = stream or sys.stderr
        self._assume_yes = assume_yes

    def print_message(self, msg: str) -> None:
        print(msg, file=self._stream)

    def print_progress(self, msg: str) -> None:
        print(msg, file=self._stream)

    def print_error(self, msg: str) -> None:
        print(f"[error] {msg}", file=self._stream)

    def close_progress(self) -> None:
        self._stream.flush()

    def confirm(self, prompt: str) -> bool:
        print(prompt, file=self._stream)
        return self._assume_yes

    def call_hook(self, hook: str, plugin: Plugin) -> None:
        logger.info("hook_called", hook=hook, plugin=plugin.name)

    def show_diff(self, plugin: Plugin, lines: list[str]) -> None:
        print("\n".join(lines), file=self._stream)

    def shell(self) -> tuple[str, str]:
        if os.name == "nt":
            return os.environ.get("COMSPEC", "cmd.exe"), "/c"
        return os.environ.get("SHELL", "/bin/sh"), "-c"

    def make_state(self) -> None:
        logger.debug("make_state")

    def update_done(self) -> None:
        logger.debug("update_done")
