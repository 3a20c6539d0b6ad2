from __future__ import annotations

import json
from typing import TYPE_CHECKING

from ._registry import validate_registry
from ._result import ValidationIssue, ValidationResult

if TYPE_CHECKING:
    from pathlib import Path


def validate_registry_file(path: Path) -> ValidationResult:
    """Load and validate a plugin registry file from disk."""
    data = json.loads(path.read_text(encoding="utf-8"))
    return validate_registry(data)


__all__ = [
    "ValidationIssue",
    "ValidationResult",
    "validate_registry",
    "validate_registry_file",
]
