from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConfigurationError, ExecutionError
from ._base import Command

if TYPE_CHECKING:
    from ..models.plugin import Plugin

logger = structlog.get_logger(__name__)

# Matches "owner/repo" or "owner/repo-name" GitHub shorthand
_GITHUB_SHORTHAND = re.compile(r"^[\w.-]+/[\w.-]+$")

_DOC_PATHS = ("doc", "README", "README.md")


class GitParams(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    executable: str = "git"
    clone_depth: int = Field(0, alias="cloneDepth")  # 0 = full history
    remote: str = "origin"
    query_timeout: float = Field(60, alias="queryTimeout")


def github_url(repo: str) -> str:
    return f"https://github.com/{repo}.git"


class GitProtocol:
    """Command builder for plugins hosted in git repositories."""

    def __init__(self, params: GitParams | None = None) -> None:
        self.params = params or GitParams()

    def _git(self, *args: str) -> Command:
        return Command(self.params.executable, args)

    # --- commands ---

    def sync_commands(self, plugin: Plugin) -> list[Command]:
        if plugin.is_installed:
            return [
                self._git("pull", "--ff", "--ff-only"),
                self._git("submodule", "update", "--init", "--recursive"),
            ]

        url = self.url(plugin)
        if not url or not plugin.path:
            raise ConfigurationError(f"Plugin {plugin.name} has no repository or path to clone into")
        args = ["clone", "--recursive"]
        if self.params.clone_depth > 0:
            args += ["--depth", str(self.params.clone_depth)]
        branch = _declared_branch(plugin)
        if branch:
            args += ["--branch", branch]
        args += [url, plugin.path]
        return [self._git(*args)]

    def rollback_commands(self, plugin: Plugin, rev: str) -> list[Command]:
        return [self._git("reset", "--hard", rev)]

    def revision_lock_commands(self, plugin: Plugin, rev: str | None) -> list[Command]:
        target = rev or _declared_branch(plugin) or self._default_branch(plugin)
        return [self._git("checkout", target)]

    def remote_check_commands(self, plugin: Plugin) -> list[Command]:
        if not plugin.is_installed:
            return []
        return [
            self._git("fetch", "--quiet", self.params.remote),
            self._git("log", "--oneline", "HEAD..@{upstream}"),
        ]

    def log_commands(self, plugin: Plugin, old_rev: str, new_rev: str) -> list[Command]:
        return [
            self._git(
                "log",
                f"{old_rev}..{new_rev}",
                "--graph",
                "--no-show-signature",
                "--pretty=format:%h [%cr] %s",
            )
        ]

    def changes_count_commands(self, plugin: Plugin, old_rev: str, new_rev: str) -> list[Command]:
        return [self._git("rev-list", "--count", f"{old_rev}..{new_rev}")]

    def diff_commands(self, plugin: Plugin, old_rev: str, new_rev: str) -> list[Command]:
        return [self._git("diff", f"{old_rev}..{new_rev}", "--", *_DOC_PATHS)]

    # --- queries ---

    def current_revision(self, plugin: Plugin) -> str:
        directory = plugin.directory
        if directory is None:
            return ""
        return self._query(directory, "rev-parse", "HEAD")

    def remote_revision(self, plugin: Plugin) -> str:
        directory = plugin.directory
        if directory is not None:
            out = self._query(directory, "ls-remote", self.params.remote, "HEAD")
        else:
            url = self.url(plugin)
            if not url:
                return ""
            out = self._query(None, "ls-remote", url, "HEAD")
        return out.split()[0] if out else ""

    def url(self, plugin: Plugin) -> str:
        repo = plugin.repo or ""
        if "://" in repo or repo.startswith("git@"):
            return repo
        if repo.startswith("github.com/"):
            return f"https://{repo}"
        if _GITHUB_SHORTHAND.match(repo):
            return github_url(repo)
        return ""

    def _default_branch(self, plugin: Plugin) -> str:
        directory = plugin.directory
        if directory is not None:
            ref = self._query(directory, "rev-parse", "--abbrev-ref", f"{self.params.remote}/HEAD")
            prefix = f"{self.params.remote}/"
            if ref.startswith(prefix):
                return ref[len(prefix) :]
        return "main"

    def _query(self, cwd: Path | None, *args: str) -> str:
        cmd = self._git(*args)
        try:
            result = subprocess.run(
                cmd.argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.params.query_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(f"{cmd} timed out", command=cmd) from e
        except FileNotFoundError as e:
            raise ExecutionError(
                f"{self.params.executable} is not installed or not in PATH", command=cmd
            ) from e
        if result.returncode != 0:
            logger.debug("git_query_failed", command=str(cmd), stderr=result.stderr.strip())
            return ""
        return result.stdout.strip()


def _declared_branch(plugin: Plugin) -> str | None:
    extra = plugin.model_extra or {}
    branch = extra.get("branch")
    return branch if isinstance(branch, str) and branch else None
