"""Per-run state: logs, updated and failed plugins."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import structlog

from ._report import is_breaking

if TYPE_CHECKING:
    from ..models.plugin import Plugin
    from ..protocols._base import ProtocolBinding
    from ._protocols import HostAdapter

logger = structlog.get_logger(__name__)

# GitHub answers a clone of a missing repository with a credentials prompt
_INVALID_REPO_MARKER = "fatal: could not read Username for "


class WorkflowStatus(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class UpdateOutcome:
    plugin: Plugin
    binding: ProtocolBinding
    old_rev: str
    new_rev: str
    url: str = ""
    log_message: str = ""
    changes_count: int = 0

    @property
    def breaking(self) -> bool:
        return is_breaking(self.log_message)


@dataclass(frozen=True)
class WorkflowResult:
    plugin: Plugin
    status: WorkflowStatus
    outcome: UpdateOutcome | None = None


@dataclass
class CheckedPlugin:
    """A plugin flagged by a staleness check."""

    plugin: Plugin
    updated: datetime | None = None  # remote push time, from the metadata API
    count: int | None = None  # upstream commits not yet fetched, from a remote check


class RunContext:
    """Accumulators for one installer invocation.

    ``logs`` receives every message; ``update_logs`` only errors and summary
    messages. Everything is mirrored to the host and, when configured, appended
    to a log file one line per message; the file stays open until ``close()``
    or the end of a ``with`` block. Workflows run concurrently, so all
    mutation goes through one lock.
    """

    def __init__(self, host: HostAdapter, log_file: str | None = None) -> None:
        self.host = host
        self.log_file = Path(log_file) if log_file else None
        self.logs: list[str] = []
        self.update_logs: list[str] = []
        self.updated: list[UpdateOutcome] = []
        self.failed: list[Plugin] = []
        self._lock = threading.Lock()
        self._log_handle: TextIO | None = None

    def __enter__(self) -> RunContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the log file. A later message reopens it in append mode."""
        with self._lock:
            if self._log_handle is not None:
                self._log_handle.close()
                self._log_handle = None

    def progress(self, msg: str) -> None:
        if not msg:
            return
        with self._lock:
            self.host.print_progress(msg)
            self.logs.append(msg)
            self._append_file(msg)

    def message(self, msg: str) -> None:
        with self._lock:
            self.host.print_message(msg)
            self.update_logs.append(msg)
            self.logs.append(msg)
            self._append_file(msg)

    def error(self, msg: str) -> None:
        if not msg:
            return
        if _INVALID_REPO_MARKER in msg:
            self._error("Target repository name is invalid.")
            self._error("You may have used the wrong plugin name.")
        self._error(msg)

    def record_updated(self, outcome: UpdateOutcome) -> None:
        with self._lock:
            self.updated.append(outcome)

    def record_failed(self, plugin: Plugin) -> None:
        with self._lock:
            self.failed.append(plugin)

    def _error(self, msg: str) -> None:
        with self._lock:
            self.host.print_error(msg)
            self.update_logs.append(msg)
            self.logs.append(msg)
            self._append_file(msg)

    def _append_file(self, msg: str) -> None:
        if self.log_file is None:
            return
        try:
            if self._log_handle is None:
                self._log_handle = self.log_file.open("a", encoding="utf-8", buffering=1)
            self._log_handle.write(f"{msg}\n")
        except OSError as e:
            # Stop retrying for the rest of the run
            logger.warning("log_file_write_failed", path=str(self.log_file), error=str(e))
            self.log_file = None
