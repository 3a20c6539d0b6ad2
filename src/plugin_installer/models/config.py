from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InstallerConfig(BaseModel):
    """Installer options. Accepts both snake_case names and the camelCase keys of config files."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)
    max_processes: int = Field(5, alias="maxProcesses")
    wait: int = 0  # milliseconds slept by a scheduler slot after each plugin
    check_diff: bool = Field(False, alias="checkDiff")
    log_file_path: str = Field("", alias="logFilePath")
    github_api_token: str = Field("", alias="githubAPIToken")
    command_timeout: float | None = Field(None, alias="commandTimeout")
    cache_warm_command: list[str] | None = Field(None, alias="cacheWarmCommand")
    cache_warm_marker: str | None = Field(None, alias="cacheWarmMarker")
    cache_warm_exclude: list[str] = Field(default_factory=list, alias="cacheWarmExclude")

    @field_validator("wait")
    @classmethod
    def _non_negative_wait(cls, v: int) -> int:
        if v < 0:
            raise ValueError("wait must be >= 0")
        return v

    @property
    def concurrency(self) -> int:
        return max(self.max_processes, 1)

    @property
    def wait_seconds(self) -> float:
        return self.wait / 1000

    @property
    def log_file(self) -> str | None:
        if not self.log_file_path:
            return None
        return os.path.expandvars(os.path.expanduser(self.log_file_path))
