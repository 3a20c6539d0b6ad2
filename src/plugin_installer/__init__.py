"""Concurrent installer and updater for editor plugins kept in version control."""

from .errors import (
    CommandFailure,
    ConfigurationError,
    CorruptStateError,
    ExecutionError,
    InstallerError,
    RemoteAPIError,
)
from .installer import Installer, make_installer
from .loaders import load_config, load_registry, parse_registry
from .models import InstallerConfig, Plugin
from .protocols import Command, GitProtocol, ProtocolTable, VCSProtocol
from .validation import ValidationResult, validate_registry, validate_registry_file

__all__ = [
    "Command",
    "CommandFailure",
    "ConfigurationError",
    "CorruptStateError",
    "ExecutionError",
    "GitProtocol",
    "Installer",
    "InstallerConfig",
    "InstallerError",
    "Plugin",
    "ProtocolTable",
    "RemoteAPIError",
    "VCSProtocol",
    "ValidationResult",
    "load_config",
    "load_registry",
    "make_installer",
    "parse_registry",
    "validate_registry",
    "validate_registry_file",
]
