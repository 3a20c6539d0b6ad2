from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from .protocols._base import Command


class InstallerError(Exception):
    """Base class for every error raised by the installer."""


class ConfigurationError(InstallerError):
    """Raised when required parameters are missing or invalid.

    Aborts the requested action before any plugin workflow starts.
    """


class ExecutionError(InstallerError):
    """Raised when a command's executable cannot be launched.

    Attributes:
        command: The command that could not be started, if applicable.
    """

    def __init__(self, message: str, command: Command | None = None) -> None:
        self.command = command
        super().__init__(message)


class CommandFailure(InstallerError):
    """Raised when a command ran but exited non-zero and the caller needs an exception.

    Attributes:
        command: The command that failed.
        returncode: Its exit status.
    """

    def __init__(self, command: Command, returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        msg = f"{command} exited with status {returncode}"
        if stderr:
            msg += f": {stderr}"
        super().__init__(msg)


class RemoteAPIError(InstallerError):
    """Raised when the remote metadata API cannot be queried (transport, auth, GraphQL errors).

    Attributes:
        url: The endpoint that failed, if applicable.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class CorruptStateError(InstallerError):
    """Raised when a persisted rollback record exists but cannot be parsed.

    Attributes:
        path: The record that could not be read.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)
