from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass
class ValidationIssue:
    """A single registry finding (error or warning)."""

    level: Literal["error", "warning"]
    path: str  # e.g. "plugins[2].build" or "foo.protocol"
    message: str

    def __str__(self) -> str:
        return f"{self.level}: {self.path}: {self.message}"


@dataclass
class ValidationResult:
    """Result of validating a plugin registry.

    Attributes:
        issues: All errors and warnings. Use .errors and .warnings for filtered views.
        valid: True if there are no errors (warnings are allowed).
    """

    issues: list[ValidationIssue] = field(default_factory=list)

    def add(self, level: Literal["error", "warning"], path: str, message: str) -> None:
        self.issues.append(ValidationIssue(level, path, message))

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "warning"]

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "error"]
