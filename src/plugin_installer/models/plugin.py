from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Plugin(BaseModel):
    """A declared plugin as stored in the registry.

    Unknown keys are kept so that host-specific attributes survive a round-trip.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)
    name: str
    path: str | None = None
    protocol: str | None = None
    repo: str | None = None
    rev: str | None = None  # pinned revision
    build: str | None = Field(None, alias="installerBuild")
    depends: str | list[str] | None = None
    local: bool = False
    frozen: bool = Field(False, alias="installerFrozen")
    # Hooks are opaque to the installer; the host decides what they mean.
    hook_pre_update: str | None = None
    hook_post_update: str | None = None
    hook_depends_update: str | None = None
    hook_done_update: str | None = None

    @property
    def depend_names(self) -> list[str]:
        if self.depends is None:
            return []
        if isinstance(self.depends, str):
            return [self.depends]
        return list(self.depends)

    @property
    def directory(self) -> Path | None:
        """The plugin path if it exists as a directory."""
        if not self.path:
            return None
        path = Path(self.path)
        return path if path.is_dir() else None

    @property
    def is_installed(self) -> bool:
        return self.directory is not None

    @property
    def excluded(self) -> bool:
        """Local and frozen plugins never take part in update workflows."""
        return self.local or self.frozen
