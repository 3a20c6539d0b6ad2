"""Version-control protocols: command builders resolved by name."""

from ._base import Command, ProtocolBinding, VCSProtocol
from ._git import GitParams, GitProtocol, github_url
from ._table import ProtocolTable, default_protocols

__all__ = [
    "Command",
    "GitParams",
    "GitProtocol",
    "ProtocolBinding",
    "ProtocolTable",
    "VCSProtocol",
    "default_protocols",
    "github_url",
]
